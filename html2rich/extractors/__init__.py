"""
Extractors that turn raw legacy markup into parsed trees.

The conversion core never parses text itself; it receives a BeautifulSoup
tree produced here (or by any other caller-supplied parser).
"""

from .markup import parse_markup, read_markup, strip_shortcodes

__all__ = ["parse_markup", "read_markup", "strip_shortcodes"]
