"""
Content Parts - Tagged union over request/response parts

A part is one of TextPart, BlobPart or FileReferencePart. Each carries a
`kind` tag and answers text_content(): only text parts return a string.
Consumers read text through that capability instead of probing types.
"""

from dataclasses import dataclass, field
from typing import List, Literal, Optional, Sequence, Union


@dataclass(frozen=True)
class TextPart:
    text: str
    kind: Literal["text"] = field(default="text", init=False)

    def text_content(self) -> Optional[str]:
        return self.text


@dataclass(frozen=True)
class BlobPart:
    """Raw document bytes attached inline"""

    data: bytes = field(repr=False)
    mime_type: str
    kind: Literal["blob"] = field(default="blob", init=False)

    def text_content(self) -> Optional[str]:
        return None


@dataclass(frozen=True)
class FileReferencePart:
    """Handle to a document stored in the provider's managed file store

    `name` is the provider resource name used for deletion, `uri` is what
    gets attached to a request.
    """

    uri: str
    mime_type: str
    name: str = ""
    kind: Literal["file_reference"] = field(default="file_reference", init=False)

    def text_content(self) -> Optional[str]:
        return None


Part = Union[TextPart, BlobPart, FileReferencePart]


def joined_text(parts: Sequence[Part]) -> str:
    """Concatenate the text of every part that has text"""
    chunks: List[str] = []
    for part in parts:
        text = part.text_content()
        if text:
            chunks.append(text)
    return "".join(chunks)


def replace_prompt(parts: Sequence[Part], prompt: str) -> List[Part]:
    """Swap the first text part for a new prompt, keeping attachments in place"""
    replaced = list(parts)
    for i, part in enumerate(replaced):
        if part.kind == "text":
            replaced[i] = TextPart(prompt)
            break
    return replaced
