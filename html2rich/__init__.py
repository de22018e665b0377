"""
Top-level package for the legacy HTML -> canonical rich-text converter.

This package turns parsed legacy (WordPress era) HTML into a canonical,
versioned rich-text document while reporting everything it could not map
cleanly.  Modules are split into subpackages:

* :mod:`html2rich.extractors` – parse raw markup into a tree
* :mod:`html2rich.parsers` – the conversion core and the markup writer
* :mod:`html2rich.models` – document, result and configuration models
* :mod:`html2rich.utils` – error vocabulary and JSON Lines reporting

The conversion core is pure: it reads a tree and a configuration bundle and
returns a result.  File handling and batch execution live in
:mod:`html2rich.migration_tool`.
"""

from .models import ConversionResult, ConverterConfig, Document
from .parsers import convert_html, convert_tree, render_markup

__all__ = [
    "ConversionResult",
    "ConverterConfig",
    "Document",
    "convert_html",
    "convert_tree",
    "render_markup",
]
