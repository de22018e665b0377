"""
Block type classification.

The default ``block_tags`` table gives every block-level tag a baseline type
(``p`` -> paragraph, ``blockquote`` -> quote(block)).  The ordered
disambiguation rules are consulted first and the first match wins, which is
how two elements with the same tag but different classes (block quote vs.
pull quote) end up with different types.

Classes a rule matched on are consumed; every other class is preserved
verbatim under ``sourceClass`` so no classification signal is lost.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional

from ..models.config import BlockRule, BlockTypeSpec, ConverterConfig


@dataclass(frozen=True)
class Classification:
    type_name: str
    variant: Optional[str]
    spec: BlockTypeSpec
    rule: Optional[BlockRule] = None
    source_class: str = ""

    @property
    def label(self) -> str:
        return f"{self.type_name}({self.variant})" if self.variant is not None else self.type_name


class BlockClassifier:
    def __init__(self, config: ConverterConfig) -> None:
        self.config = config

    def classify(self, tag: str, attrs: Mapping[str, str], *, inline: bool = False) -> Optional[Classification]:
        """Return the block classification of an element, or ``None``.

        For inline tags only rules that name the tag explicitly may promote
        the element to a block; a class-only rule never turns a ``span`` into
        a quote.
        """
        classes = attrs.get("class", "").split()
        for rule in self.config.block_rules:
            if inline and tag not in rule.tags:
                continue
            consumed = rule.match(tag, classes, attrs)
            if consumed is None:
                continue
            residual = " ".join(c for c in classes if c not in consumed)
            return self._classification(rule.type, rule, residual)

        ref = self.config.block_tags.get(tag)
        if ref is None:
            return None
        return self._classification(ref, None, attrs.get("class", ""))

    def _classification(self, ref: str, rule: Optional[BlockRule], source_class: str) -> Classification:
        name, variant = self.config.parse_type_ref(ref)
        return Classification(
            type_name=name,
            variant=variant,
            spec=self.config.block_types[name],
            rule=rule,
            source_class=source_class,
        )
