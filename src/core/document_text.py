"""
Textual Document View

Builds the read-only document shown for instances without displayable pixel
data (structured reports, or series where every image fails to decode).
Readable strings are picked out of the instance's tag dictionary with a
simple heuristic that drops identifiers and numbers.

Inputs:
    - Raw DICOM bytes of one instance

Outputs:
    - TextDocument (title, paragraphs, optional inline error)

Requirements:
    - core.dicom_parser for tag iteration
"""

import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from core.dicom_parser import DICOMParser


NO_READABLE_TEXT = "No readable text content found in this file."

_ALPHA = re.compile(r"[a-zA-Z]")
_NUMERIC_OR_DOTTED = re.compile(r"^[0-9.]+$")
_IDENTIFIER_TOKEN = re.compile(r"^[A-Z0-9]{64}$")


def is_readable_text(value: str) -> bool:
    """
    Decide whether a tag value reads as human text.

    A value qualifies when it is longer than 2 characters, contains a letter,
    is not purely digits and dots, and is not a 64 character uppercase
    alphanumeric token.
    """
    if not isinstance(value, str) or len(value) <= 2:
        return False
    if not _ALPHA.search(value):
        return False
    if _NUMERIC_OR_DOTTED.match(value):
        return False
    if _IDENTIFIER_TOKEN.match(value):
        return False
    return True


def extract_readable_text(values: Iterable[str]) -> List[str]:
    """Filter an iterable of tag values down to the readable ones, keeping order."""
    return [value for value in values if is_readable_text(value)]


@dataclass
class TextDocument:
    """
    A read-only document for textual mode.

    Attributes:
        title: Heading (e.g. "Structured Report (SR)")
        paragraphs: Readable strings in dataset order
        error: Inline error message when the document could not be built
        parser: Parsed tags of the source, used for the metadata panel
    """
    title: str
    paragraphs: List[str] = field(default_factory=list)
    error: Optional[str] = None
    parser: Optional[DICOMParser] = None

    @property
    def is_error(self) -> bool:
        return self.error is not None

    @property
    def body(self) -> List[str]:
        """Lines to display: the error, the paragraphs, or the empty-content placeholder."""
        if self.error is not None:
            return [self.error]
        if not self.paragraphs:
            return [NO_READABLE_TEXT]
        return list(self.paragraphs)

    def to_text(self) -> str:
        return "\n\n".join([self.title] + self.body)


def build_text_document(raw: bytes, title: str) -> TextDocument:
    """
    Parse raw bytes and collect their readable text.

    Errors are caught and returned as an inline error document.

    Args:
        raw: File contents
        title: Document heading

    Returns:
        TextDocument
    """
    try:
        parser = DICOMParser.from_bytes(raw)
        paragraphs = extract_readable_text(parser.iter_text_values())
    except Exception as e:
        print(f"[DOCUMENT] Error building text view: {e}")
        return TextDocument(title=title, error=f"Error loading document: {e}")
    return TextDocument(title=title, paragraphs=paragraphs, parser=parser)
