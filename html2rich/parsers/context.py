"""
Per-document accumulator for side-channel reports.

A :class:`ConversionContext` is created for every conversion call and
discarded afterwards.  Nested conversions (table cells) share their parent's
context so all reports of one document end up in one place.
"""

from __future__ import annotations

from typing import Any, Dict, Hashable, List, Mapping, Optional, Sequence, Set

from ..models.config import ConverterConfig
from ..models.result import NormalizationEvent, QuarantinedNode, QuarantineReason, UnmappedTag


class ConversionContext:
    def __init__(self, config: ConverterConfig) -> None:
        self.config = config
        self.quarantine: List[QuarantinedNode] = []
        self.events: List[NormalizationEvent] = []
        self._unmapped: Dict[str, Dict[str, Any]] = {}
        self._seen: Set[Hashable] = set()

    def record_event(
        self,
        code: str,
        path: Sequence[int] = (),
        tag: Optional[str] = None,
        *,
        once: Optional[Hashable] = None,
        **detail: Any,
    ) -> None:
        """Append a normalization event; ``once`` de-duplicates repeated findings."""
        if once is not None:
            key = (code, tuple(path), once)
            if key in self._seen:
                return
            self._seen.add(key)
        self.events.append(NormalizationEvent(code=code, path=list(path), tag=tag, detail=detail))

    def record_unmapped(self, tag: str, attrs: Mapping[str, str], path: Sequence[int]) -> None:
        entry = self._unmapped.get(tag)
        if entry is None:
            self._unmapped[tag] = {"tag": tag, "count": 1, "sample_attrs": dict(attrs)}
        else:
            entry["count"] += 1
        self.record_event("unmapped_element", path, tag, attrs=dict(attrs))

    def record_quarantine(
        self,
        raw_markup: str,
        path: Sequence[int],
        reason: QuarantineReason,
        tag: Optional[str] = None,
    ) -> None:
        """Append a quarantine entry; the same finding at the same position is kept once."""
        key = ("quarantine", tuple(path), reason, raw_markup)
        if key in self._seen:
            return
        self._seen.add(key)
        self.quarantine.append(
            QuarantinedNode(raw_markup=raw_markup, position_path=list(path), reason=reason, tag=tag)
        )

    @property
    def unmapped_tags(self) -> List[UnmappedTag]:
        return [UnmappedTag(**entry) for entry in self._unmapped.values()]
