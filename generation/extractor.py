"""
Response Extractor - Recover quiz JSON from model output

Models wrap JSON in prose or markdown fences, and truncate it mid-array when
they hit the output token ceiling. extract_json() tries, in order:

1. The widest brace-delimited object mentioning "questions"
2. A fenced code block
3. Repair of truncated output: close open objects/arrays outside string
   literals, else re-wrap the complete elements of the "questions" array
4. The original text unchanged (the caller's decode then fails and retries)

A candidate only wins if it parses as JSON. decode_quiz() then applies the
strict schema (unknown fields rejected).
"""

import json
import re
from typing import List, Optional

from config import get_logger
from generation.models import QuizDraft

logger = get_logger(__name__).bind(component="extractor")

QUESTIONS_OBJECT_RE = re.compile(r'\{.*"questions".*\}', re.DOTALL)
CODE_BLOCK_RE = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL)
OBJECT_START_RE = re.compile(r'\{\s*"(?:title|questions)"\s*:')
QUESTIONS_ARRAY_RE = re.compile(r'"questions"\s*:\s*\[')
TITLE_RE = re.compile(r'"title"\s*:\s*"((?:[^"\\]|\\.)*)"')

_decoder = json.JSONDecoder()


def _parses(candidate: str) -> bool:
    try:
        json.loads(candidate)
    except ValueError:
        return False
    return True


def extract_json(raw_text: str) -> str:
    """Best-effort extraction of the quiz JSON object from raw model text

    May return unparsable text; callers must still handle decode failure.
    """
    if not raw_text or not raw_text.strip():
        return ""

    match = QUESTIONS_OBJECT_RE.search(raw_text)
    if match and _parses(match.group(0)):
        return match.group(0)

    block = CODE_BLOCK_RE.search(raw_text)
    if block and _parses(block.group(1)):
        return block.group(1)

    repaired = repair_truncated_json(raw_text)
    if repaired is not None:
        logger.info("recovered incomplete json", original_length=len(raw_text), repaired_length=len(repaired))
        return repaired

    return raw_text


def repair_truncated_json(text: str) -> Optional[str]:
    """Attempt to turn a truncated quiz object into valid JSON

    Returns:
        Parsable JSON string, or None if nothing could be recovered
    """
    start = OBJECT_START_RE.search(text)
    if not start:
        return None
    fragment = text[start.start():]

    # Complete object followed by trailing prose
    try:
        _, end = _decoder.raw_decode(fragment)
        return fragment[:end]
    except ValueError:
        pass

    balanced = close_open_structures(fragment)
    if balanced is not None and _parses(balanced):
        return balanced

    return rewrap_questions_array(fragment)


def close_open_structures(fragment: str) -> Optional[str]:
    """Append the closers for every '{' and '[' left open outside string literals

    A string literal cut off mid-way is closed first and a dangling comma is
    dropped. Returns None if nothing is open.
    """
    stack: List[str] = []
    in_string = False
    escaped = False

    for char in fragment:
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char in "{[":
            stack.append(char)
        elif char in "}]" and stack:
            stack.pop()

    if not stack and not in_string:
        return None

    body = fragment
    if in_string:
        if escaped:
            body = body[:-1]
        body += '"'
    body = body.rstrip()
    if body.endswith(","):
        body = body[:-1]

    closers = "".join("}" if opener == "{" else "]" for opener in reversed(stack))
    return body + closers


def _array_element_ends(content: str) -> List[int]:
    """Indexes of each '}' that closes a top-level element of an array body"""
    ends: List[int] = []
    depth = 0
    in_string = False
    escaped = False

    for i, char in enumerate(content):
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char in "{[":
            depth += 1
        elif char in "}]":
            if depth == 0:
                # The array itself closed
                break
            depth -= 1
            if depth == 0 and char == "}":
                ends.append(i)

    return ends


def rewrap_questions_array(fragment: str) -> Optional[str]:
    """Keep the complete questions and wrap them in a minimal quiz object

    The title is carried over when it appears before the questions array.
    """
    match = QUESTIONS_ARRAY_RE.search(fragment)
    if not match:
        return None

    content = fragment[match.end():]
    title = TITLE_RE.search(fragment[:match.start()])
    prefix = "{"
    if title:
        prefix += f'"title": "{title.group(1)}", '
    prefix += '"questions": ['

    for end in reversed(_array_element_ends(content)):
        candidate = prefix + content[:end + 1] + "]}"
        if _parses(candidate):
            return candidate

    return None


def decode_quiz(json_text: str) -> QuizDraft:
    """Strictly decode extracted JSON into a QuizDraft

    Raises:
        ValueError: On invalid JSON or schema mismatch (pydantic's
            ValidationError is a ValueError)
    """
    return QuizDraft.model_validate_json(json_text)
