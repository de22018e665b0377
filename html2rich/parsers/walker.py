"""
Depth-first traversal of a parsed markup tree.

:class:`TreeWalker` flattens a BeautifulSoup tree into a stream of
:class:`WalkEvent` objects (``ENTER``, ``TEXT``, ``EXIT``).  It drops
non-content nodes (comments, doctypes, processing instructions), collapses
whitespace outside ``pre``-like elements and enforces the configured maximum
nesting depth.

Consumers that handle an element atomically call :meth:`TreeWalker.prune`
right after receiving its ``ENTER`` event; the walker then skips the
element's children and its ``EXIT`` event.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from bs4.element import Comment, Declaration, Doctype, NavigableString, ProcessingInstruction, Tag

from ..utils.errors import StructuralLimitExceeded

PRESERVE_WHITESPACE_TAGS = frozenset({"pre", "textarea", "listing", "plaintext"})

_NON_CONTENT = (Comment, Declaration, Doctype, ProcessingInstruction)
_WS_RE = re.compile(r"[ \t\n\r\f]+")


class EventKind(str, Enum):
    ENTER = "enter"
    TEXT = "text"
    EXIT = "exit"


@dataclass(frozen=True)
class WalkEvent:
    kind: EventKind
    path: Tuple[int, ...]
    depth: int
    tag: Optional[str] = None
    attrs: Dict[str, str] = field(default_factory=dict)
    text: str = ""
    element: Optional[Tag] = None


def normalize_attrs(attrs: Mapping[str, Any]) -> Dict[str, str]:
    """Attribute values as plain strings (multi-valued ones space-joined)."""
    out: Dict[str, str] = {}
    for name, value in (attrs or {}).items():
        if isinstance(value, (list, tuple)):
            value = " ".join(str(v) for v in value)
        out[str(name).lower()] = "" if value is None else str(value)
    return out


def collapse_whitespace(text: str) -> str:
    return _WS_RE.sub(" ", text)


class TreeWalker:
    def __init__(
        self,
        root: Tag,
        *,
        max_depth: int,
        base_path: Tuple[int, ...] = (),
        base_depth: int = 0,
        include_root: bool = False,
    ) -> None:
        self.root = root
        self.max_depth = max_depth
        self.base_path = tuple(base_path)
        self.base_depth = base_depth
        self.include_root = include_root
        self._pruned = False

    def prune(self) -> None:
        """Skip the children and the EXIT of the element just entered."""
        self._pruned = True

    def _enter(self, element: Tag, path: Tuple[int, ...], depth: int) -> WalkEvent:
        if depth > self.max_depth:
            raise StructuralLimitExceeded(
                f"Nesting depth {depth} exceeds max_depth={self.max_depth}",
                path=list(path),
                tag=element.name,
            )
        self._pruned = False
        return WalkEvent(
            EventKind.ENTER,
            path,
            depth,
            tag=(element.name or "").lower(),
            attrs=normalize_attrs(element.attrs),
            element=element,
        )

    def events(self) -> Iterator[WalkEvent]:
        preserve = self._inside_preserved()
        # Each frame: (children iterator, element or None, path, depth, preserve)
        frames: List[Tuple[Iterator[Tuple[int, Any]], Optional[Tag], Tuple[int, ...], int, bool]] = []

        if self.include_root:
            event = self._enter(self.root, self.base_path, self.base_depth)
            yield event
            if self._pruned:
                self._pruned = False
                return
            frames.append((
                enumerate(self.root.contents), self.root, self.base_path, self.base_depth,
                preserve or event.tag in PRESERVE_WHITESPACE_TAGS,
            ))
        else:
            frames.append((enumerate(self.root.contents), None, self.base_path, self.base_depth, preserve))

        while frames:
            children, element, path, depth, preserve = frames[-1]
            try:
                index, child = next(children)
            except StopIteration:
                frames.pop()
                if element is not None:
                    yield WalkEvent(EventKind.EXIT, path, depth, tag=(element.name or "").lower(), element=element)
                continue

            child_path = path + (index,)
            if isinstance(child, NavigableString):
                if isinstance(child, _NON_CONTENT):
                    continue
                text = str(child) if preserve else collapse_whitespace(str(child))
                if text:
                    yield WalkEvent(EventKind.TEXT, child_path, depth, text=text)
                continue
            if not isinstance(child, Tag):
                continue

            event = self._enter(child, child_path, depth + 1)
            yield event
            if self._pruned:
                self._pruned = False
                continue
            frames.append((
                enumerate(child.contents), child, child_path, depth + 1,
                preserve or event.tag in PRESERVE_WHITESPACE_TAGS,
            ))

    def _inside_preserved(self) -> bool:
        names = [(p.name or "").lower() for p in self.root.parents]
        if not self.include_root:
            names.append((self.root.name or "").lower())
        return any(n in PRESERVE_WHITESPACE_TAGS for n in names)
