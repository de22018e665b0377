"""
Parsers and converters used by the conversion pipeline.

This subpackage exposes ``convert_tree`` and ``convert_html`` from
:mod:`html2rich.parsers.converter` and ``render_markup`` from
:mod:`html2rich.parsers.markup_writer`.
"""

from .converter import convert_html, convert_tree
from .markup_writer import render_markup

__all__ = ["convert_html", "convert_tree", "render_markup"]
