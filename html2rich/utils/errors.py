"""
Error vocabulary and structured reporting for document conversion.

The :mod:`html2rich.utils.errors` module centralizes three things:

``ERRORS``
    Maps every condition/event code used by the converter to a human readable
    message.  Codes not present in the dictionary fall back to the code
    itself.

Exceptions
    :class:`StructuralLimitExceeded` and :class:`QuarantineViolation` are the
    only conditions that abort a document.  They are raised inside the
    converter and turned into a ``failure`` result by
    :func:`html2rich.parsers.converter.convert_tree`; callers of the public
    API never see them raised.

``report_error`` / ``report_ok``
    Append one JSON object per document outcome to JSON Lines files under
    ``reports/conversion`` so a batch can be reviewed afterwards.  These are
    used by the tool layer only; the conversion core never touches the
    filesystem.
"""

from __future__ import annotations

import json
import os
from typing import Any, Dict, Optional

# Codes for fatal conditions, recovered normalization events and tool-level
# outcomes share one lookup.
ERRORS: Dict[str, str] = {
    "structural_limit_exceeded": "Document exceeds a configured structural limit",
    "quarantined_content": "Unsafe content was quarantined in strict mode",
    "unmapped_element": "Element has no mapping; text kept without formatting",
    "malformed_nesting": "Content was auto-wrapped to repair invalid nesting",
    "irregular_table_grid": "Table rows were padded to a rectangular grid",
    "container_flattened": "Wrapper element was flattened; its attributes are kept here",
    "ignored_element": "Non-content element was skipped",
    "attribute_coercion_failed": "Attribute value did not match its declared type",
    "mark_attribute_overridden": "Nearer inline element overrode a mark attribute",
    "void_element_attributes": "Line break element carried attributes; they are kept here",
    "empty_inline_element": "Formatting element had no text; its attributes are kept here",
    "caption_flattened": "Table caption was reduced to plain text; its converted content is kept here",
    "DOCUMENT_CONVERTED": "Document converted successfully",
    "DOCUMENT_FAILED": "Document conversion failed",
    "DOCUMENT_UNREADABLE": "Could not read input document",
}


class ConversionError(Exception):
    """Base class for conditions that abort a single document conversion."""

    code = "conversion_error"

    def __init__(self, message: Optional[str] = None, **detail: Any) -> None:
        self.detail = detail
        super().__init__(message or ERRORS.get(self.code, self.code))


class StructuralLimitExceeded(ConversionError):
    code = "structural_limit_exceeded"


class QuarantineViolation(ConversionError):
    code = "quarantined_content"


_REPORT_DIR = os.path.join("reports", "conversion")
_ERROR_LOG = os.path.join(_REPORT_DIR, "errors.jsonl")
_OK_LOG = os.path.join(_REPORT_DIR, "success.jsonl")


def _write_jsonl(path: str, data: Dict[str, Any]) -> None:
    """Append ``data`` as a JSON object followed by a newline to ``path``."""
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "a", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False)
        f.write("\n")


def report_error(
    code: str,
    document_id: str,
    exc: Optional[BaseException] = None,
    extra: Optional[Dict[str, Any]] = None,
    *,
    path: str = _ERROR_LOG,
) -> Dict[str, Any]:
    """Log a failed conversion of ``document_id``.

    Parameters
    ----------
    code:
        A key identifying the type of error.  If ``code`` is present in
        :data:`ERRORS` its value will be used as the message.
    document_id:
        Identifier of the document (usually its source path).
    exc:
        Optional exception instance that triggered the error.  The string
        representation of the exception will be included in the log entry.
    extra:
        Optional dictionary of additional fields to merge into the entry.
    """
    message = ERRORS.get(code, code)
    entry: Dict[str, Any] = {"code": code, "message": message, "document": document_id}
    if exc is not None:
        entry["error"] = str(exc)
    if extra:
        entry.update(extra)
    print(f"[ERROR] {message} - {document_id}")
    _write_jsonl(path, entry)
    return entry


def report_ok(
    code: str,
    document_id: str,
    extra: Optional[Dict[str, Any]] = None,
    *,
    path: str = _OK_LOG,
) -> Dict[str, Any]:
    """Log a successful conversion of ``document_id``."""
    message = ERRORS.get(code, code)
    entry: Dict[str, Any] = {"code": code, "message": message, "document": document_id}
    if extra:
        entry.update(extra)
    print(f"[OK] {message} - {document_id}")
    _write_jsonl(path, entry)
    return entry
