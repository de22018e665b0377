"""
Data models shared by the converter and its callers.
"""

from .config import BlockRule, BlockTypeSpec, ConverterConfig, EmbedSchema, MarkRule
from .document import Block, Document, Mark, TableCell, TableRow, TextRun, document_from_dict
from .result import (
    ConversionFailure,
    ConversionResult,
    ConversionStatus,
    NormalizationEvent,
    QuarantinedNode,
    QuarantineReason,
    UnmappedTag,
)

__all__ = [
    "Block",
    "BlockRule",
    "BlockTypeSpec",
    "ConversionFailure",
    "ConversionResult",
    "ConversionStatus",
    "ConverterConfig",
    "Document",
    "EmbedSchema",
    "Mark",
    "MarkRule",
    "NormalizationEvent",
    "QuarantinedNode",
    "QuarantineReason",
    "TableCell",
    "TableRow",
    "TextRun",
    "UnmappedTag",
    "document_from_dict",
]
