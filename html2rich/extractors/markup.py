"""
Markup parsing collaborator.

The converter consumes an already parsed tree.  This module is the thin edge
that produces one from raw WordPress HTML using BeautifulSoup's built-in
``html.parser`` backend.
"""

from __future__ import annotations

import re

from bs4 import BeautifulSoup

_SHORTCODE_RE = re.compile(r"\[/?caption[^\]]*\]", re.IGNORECASE)


def strip_shortcodes(html: str) -> str:
    """Remove WordPress ``[caption]`` shortcodes, keeping their inner markup."""
    return _SHORTCODE_RE.sub("", html or "")


def parse_markup(html: str) -> BeautifulSoup:
    return BeautifulSoup(strip_shortcodes(html), "html.parser")


def read_markup(path: str) -> BeautifulSoup:
    with open(path, "r", encoding="utf-8") as f:
        return parse_markup(f.read())
