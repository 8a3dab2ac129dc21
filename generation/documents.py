"""
Source Documents - Content handed to the generation pipeline

A SourceDocument is an immutable reference to content on local disk. Callers
create them from uploaded files or fetched transcripts and own their lifecycle:
the pipeline reads them but never deletes them. cleanup() is for the caller.
"""

import os
import tempfile
import uuid
from typing import Optional

from pydantic.dataclasses import dataclass

from config import get_logger
from exceptions import DocumentError

logger = get_logger(__name__).bind(component="documents")

MIME_TYPES = {
    ".pdf": "application/pdf",
    ".txt": "text/plain",
    ".md": "text/markdown",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}


def get_mime_type(filename: str) -> str:
    """MIME type from the file extension, octet-stream when unknown"""
    ext = os.path.splitext(filename)[1].lower()
    return MIME_TYPES.get(ext, "application/octet-stream")


def save_temp_file(data: bytes, filename: str, temp_dir: Optional[str] = None) -> str:
    """Write data to a uniquely named file in the temp directory

    Returns:
        Path of the written file
    """
    directory = temp_dir or tempfile.gettempdir()
    safe_name = os.path.basename(filename) or "document"
    path = os.path.join(directory, f"{uuid.uuid4()}_{safe_name}")
    try:
        with open(path, "wb") as f:
            f.write(data)
    except OSError as e:
        raise DocumentError("failed to save temporary file", document_name=filename, original_error=e) from e
    return path


@dataclass(frozen=True)
class SourceDocument:
    """One input document: display name, content path and size in bytes"""

    name: str
    path: str
    size_bytes: int

    @property
    def mime_type(self) -> str:
        return get_mime_type(self.name)

    @classmethod
    def from_upload(cls, filename: str, data: bytes, temp_dir: Optional[str] = None) -> "SourceDocument":
        """Persist uploaded bytes to a temp file and describe them

        Raises:
            DocumentError: If the upload is empty or cannot be written
        """
        if not data:
            raise DocumentError(f"file {filename} is empty", document_name=filename)

        path = save_temp_file(data, filename, temp_dir)
        logger.debug("saved upload to temp file", filename=filename, size_bytes=len(data))
        return cls(name=filename, path=path, size_bytes=len(data))

    @classmethod
    def from_transcript(cls, url: str, text: str, temp_dir: Optional[str] = None) -> "SourceDocument":
        """Persist a fetched video transcript as a plain-text document

        Raises:
            DocumentError: If the transcript is empty or cannot be written
        """
        if not text or not text.strip():
            raise DocumentError(f"transcript for {url} is empty", document_name=url)

        data = text.encode("utf-8")
        filename = f"transcript_{uuid.uuid4()}.txt"
        path = save_temp_file(data, filename, temp_dir)
        logger.info("saved transcript to temp file", url=url, length=len(text))
        return cls(name=filename, path=path, size_bytes=len(data))

    def read_bytes(self) -> bytes:
        """Read the document content

        Raises:
            DocumentError: If the file is missing, unreadable or empty
        """
        try:
            with open(self.path, "rb") as f:
                data = f.read()
        except OSError as e:
            raise DocumentError(f"failed to read file {self.name}", document_name=self.name, original_error=e) from e

        if not data:
            raise DocumentError(f"file {self.name} is empty", document_name=self.name)
        return data

    def cleanup(self) -> None:
        """Remove the backing temp file, logging (not raising) on failure"""
        try:
            os.remove(self.path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("failed to remove temp file", path=self.path, error=str(e))


def total_size(documents) -> int:
    return sum(doc.size_bytes for doc in documents)
