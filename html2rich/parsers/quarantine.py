"""
Isolation of executable or unsafe content.

:class:`ScriptQuarantine` sits between the tree walker and everything that
builds output.  Denylisted elements never reach the builder: their raw
markup, tree position and a reason code are appended to the quarantine
report instead.  Event-handler attributes and URLs with executable schemes
are stripped from the forwarded attributes and reported the same way.

Nothing is executed, rewritten or repaired here.  Whether quarantined
content is discarded or ported by hand is an operator decision; whether it
fails the document is the ``strict_quarantine`` configuration flag, applied
by the assembler.
"""

from __future__ import annotations

import re
from dataclasses import replace
from html import escape
from typing import Dict, Iterator

from ..models.config import ConverterConfig
from ..models.result import QuarantineReason
from .context import ConversionContext
from .walker import EventKind, TreeWalker, WalkEvent

# Browsers ignore ASCII whitespace and control characters inside a scheme.
_SCHEME_NOISE = re.compile(r"[\x00-\x20\x7f]+")


def is_event_handler(name: str) -> bool:
    return len(name) > 2 and name.startswith("on")


def is_unsafe_url(value: str, schemes) -> bool:
    normalized = _SCHEME_NOISE.sub("", value or "").lower()
    return any(normalized.startswith(s) for s in schemes)


class ScriptQuarantine:
    def __init__(self, config: ConverterConfig, context: ConversionContext) -> None:
        self.context = context
        self.denylist = frozenset(config.script_denylist)
        self.url_attributes = frozenset(config.url_attributes)
        self.unsafe_schemes = tuple(config.unsafe_url_schemes)

    def filter(self, walker: TreeWalker) -> Iterator[WalkEvent]:
        """Yield the walker's events with unsafe content removed."""
        for event in walker.events():
            if event.kind is not EventKind.ENTER:
                yield event
                continue
            if event.tag in self.denylist:
                self.context.record_quarantine(
                    str(event.element), event.path, QuarantineReason.DENYLISTED_ELEMENT, event.tag
                )
                walker.prune()
                continue
            attrs = self._strip_unsafe_attributes(event)
            if attrs is not None:
                event = replace(event, attrs=attrs)
            yield event

    def _strip_unsafe_attributes(self, event: WalkEvent):
        safe: Dict[str, str] = {}
        stripped = False
        for name, value in event.attrs.items():
            reason = None
            if is_event_handler(name):
                reason = QuarantineReason.EVENT_HANDLER_ATTRIBUTE
            elif name in self.url_attributes and is_unsafe_url(value, self.unsafe_schemes):
                reason = QuarantineReason.UNSAFE_URL
            if reason is None:
                safe[name] = value
                continue
            stripped = True
            self.context.record_quarantine(f'{name}="{escape(value)}"', event.path, reason, event.tag)
        return safe if stripped else None
