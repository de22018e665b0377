"""
Inline formatting marks.

Each inline element contributes at most one tag-derived mark (first matching
rule wins) plus any class-derived marks declared in the configuration.  At
every text node the marks of all open inline elements up to the nearest
block boundary are folded into one flat, canonically ordered set:

* a single-valued kind appearing on several ancestors collapses to one mark
  (``<b><b>x</b></b>`` is bold once),
* when ancestors disagree on an attribute of the same kind the nearest one
  wins and the overridden value is recorded as an event,
* multi-valued kinds keep one mark per distinct attribute set.
"""

from __future__ import annotations

from copy import deepcopy
from typing import Any, Dict, List, Mapping, Sequence, Tuple

from ..models.config import ConverterConfig, MarkRule
from ..models.document import Mark
from .attributes import AttributeExtractor
from .context import ConversionContext

# (path, tag, marks) of one open inline element, nearest ancestor first.
Contribution = Tuple[Tuple[int, ...], str, Tuple[Mark, ...]]


class MarkResolver:
    def __init__(self, config: ConverterConfig, context: ConversionContext, extractor: AttributeExtractor) -> None:
        self.context = context
        self.extractor = extractor
        self._tag_rules: Dict[str, List[MarkRule]] = {}
        self._class_rules: Dict[str, MarkRule] = {}
        for rule in config.mark_rules:
            for tag in rule.tags:
                self._tag_rules.setdefault(tag, []).append(rule)
            if not rule.tags:
                for cls in rule.classes:
                    self._class_rules.setdefault(cls, rule)
        self.multi_valued = frozenset(r.kind for r in config.mark_rules if r.multi_valued)

    @property
    def mark_tags(self) -> frozenset:
        return frozenset(self._tag_rules)

    def marks_for(self, tag: str, attrs: Mapping[str, str], path: Sequence[int] = ()) -> Tuple[Mark, ...]:
        """Marks contributed by one inline element; empty if it maps to nothing."""
        classes = attrs.get("class", "").split()
        used: List[str] = []

        primary = None
        for rule in self._tag_rules.get(tag, ()):
            hits = [c for c in classes if c in rule.classes]
            if rule.classes and not hits:
                continue
            if any(not attrs.get(a) for a in rule.required_attrs):
                continue
            primary = rule
            used.extend(hits)
            break

        by_class: List[Tuple[MarkRule, str]] = []
        for cls in classes:
            rule = self._class_rules.get(cls)
            if rule is not None and cls not in used:
                by_class.append((rule, cls))
                used.append(cls)

        residual = " ".join(c for c in classes if c not in used)
        marks: List[Mark] = []
        # The element's remaining attributes ride on its first mark only.
        carrier_pending = True
        if primary is not None:
            marks.append(Mark(kind=primary.kind, attrs=self._attrs(primary, tag, attrs, path, residual)))
            carrier_pending = False
        for rule, cls in by_class:
            mark_attrs: Dict[str, Any] = {"name": cls} if rule.kind in self.multi_valued else {}
            if carrier_pending:
                mark_attrs.update(self._attrs(rule, tag, attrs, path, residual))
                carrier_pending = False
            marks.append(Mark(kind=rule.kind, attrs=mark_attrs))
        return tuple(marks)

    def _attrs(self, rule: MarkRule, tag: str, attrs: Mapping[str, str], path, residual: str) -> Dict[str, Any]:
        return self.extractor.extract(rule.kind, attrs, path=path, tag=tag, typed=rule.attrs, classes=residual)

    def resolve(self, stack: Sequence[Contribution]) -> Tuple[Mark, ...]:
        """Fold a nearest-first stack of contributions into one mark set."""
        single: Dict[str, Dict[str, Any]] = {}
        multi: Dict[Tuple[str, str], Mark] = {}
        for path, tag, marks in stack:
            for mark in marks:
                if mark.kind in self.multi_valued:
                    multi.setdefault(mark.sort_key, mark)
                elif mark.kind not in single:
                    single[mark.kind] = deepcopy(mark.attrs)
                else:
                    self._merge_farther(single[mark.kind], mark.attrs, mark.kind, path, tag)
        resolved = [Mark(kind=kind, attrs=attrs) for kind, attrs in single.items()]
        resolved.extend(multi.values())
        return tuple(sorted(resolved, key=lambda m: m.sort_key))

    def _merge_farther(
        self,
        nearest: Dict[str, Any],
        farther: Mapping[str, Any],
        kind: str,
        path: Sequence[int],
        tag: str,
        prefix: str = "",
    ) -> None:
        for key, value in farther.items():
            if key not in nearest:
                nearest[key] = deepcopy(value)
            elif isinstance(value, dict) and isinstance(nearest[key], dict):
                self._merge_farther(nearest[key], value, kind, path, tag, prefix=f"{prefix}{key}.")
            elif nearest[key] != value:
                self.context.record_event(
                    "mark_attribute_overridden",
                    path,
                    tag,
                    once=(kind, prefix + key),
                    kind=kind,
                    attribute=prefix + key,
                    overridden=value,
                    kept=nearest[key],
                )
