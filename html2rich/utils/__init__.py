"""
Utility helpers used by the conversion tool.

This subpackage exposes the error vocabulary and the JSON Lines reporting
functions.
"""

from .errors import ERRORS, ConversionError, QuarantineViolation, StructuralLimitExceeded, report_error, report_ok

__all__ = [
    "ERRORS",
    "ConversionError",
    "QuarantineViolation",
    "StructuralLimitExceeded",
    "report_error",
    "report_ok",
]
