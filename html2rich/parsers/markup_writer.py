"""
Canonical document -> HTML markup.

:func:`render_markup` writes a converted document back as markup using the
same configuration bundle that produced it, so that converting the rendered
markup again yields the same document.  It is used to review conversions
and to check that the converter is idempotent; it is not a general purpose
HTML serializer.
"""

from __future__ import annotations

from html import escape
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from ..models.config import BlockRule, ConverterConfig, MarkRule
from ..models.document import Block, Document, Mark, TableCell, TableRow, TextRun
from .attributes import render_value
from .blocks import BlockClassifier

VOID_TAGS = frozenset({"img", "hr", "br", "source", "track", "col", "wbr", "input", "area"})

# Attribute-map keys that are not element attributes of their own.
_BOOKKEEPING = frozenset({
    "data", "dataSchema", "extra", "sourceClass", "marks", "fallback", "sources", "caption", "section",
})


def _open(tag: str, attrs: Iterable[Tuple[str, str]]) -> str:
    rendered = "".join(f' {name}="{escape(value, quote=True)}"' for name, value in attrs)
    return f"<{tag}{rendered}>"


def _classes(*parts: Optional[str]) -> List[Tuple[str, str]]:
    joined = " ".join(p for p in parts if p)
    return [("class", joined)] if joined else []


class MarkupWriter:
    def __init__(self, config: Optional[ConverterConfig] = None) -> None:
        self.config = config or ConverterConfig()
        self._type_tags: Dict[str, str] = {}
        for tag, ref in self.config.block_tags.items():
            self._type_tags.setdefault(self.config.normalize_ref(ref), tag)
            self._type_tags.setdefault(self.config.parse_type_ref(ref)[0], tag)
        self._mark_rules: Dict[str, MarkRule] = {}
        for rule in self.config.mark_rules:
            self._mark_rules.setdefault(rule.kind, rule)
        self.classifier = BlockClassifier(self.config)
        self.inline_tags = frozenset(self.config.inline_tags) | frozenset(
            tag for rule in self.config.mark_rules for tag in rule.tags
        )

    # --- Attributes ---

    def node_attrs(self, attrs: Mapping[str, Any], skip: Iterable[str] = ()) -> List[Tuple[str, str]]:
        """Element attributes of an attribute map (typed, data, extra)."""
        skipped = set(skip) | _BOOKKEEPING
        out: List[Tuple[str, str]] = []
        for name, value in attrs.items():
            if name not in skipped and value is not None:
                out.append((name, render_value(value)))
        for field, value in (attrs.get("data") or {}).items():
            out.append((self.config.data_prefix + field, render_value(value)))
        out.extend((name, str(value)) for name, value in (attrs.get("extra") or {}).items())
        return out

    # --- Blocks ---

    def _candidates(self, block: Block) -> Iterator[Tuple[str, List[Tuple[str, str]], Optional[str]]]:
        label = self.config.label_of(block)
        if label in self._type_tags:
            yield self._type_tags[label], [], None
        for rule in self.config.block_rules:
            if self.config.normalize_ref(rule.type) == label:
                yield self._rule_tag(rule, block.type)
        yield self._type_tags.get(block.type, "div"), [], None

    def _rule_tag(self, rule: BlockRule, type_name: str) -> Tuple[str, List[Tuple[str, str]], Optional[str]]:
        tag = rule.tags[0] if rule.tags else self._type_tags.get(type_name, "div")
        attrs = [(name, value or "") for name, value in rule.attrs.items()]
        return tag, attrs, rule.classes[0] if rule.classes else None

    def block_opening(self, block: Block, skip: Iterable[str] = ()) -> Tuple[str, List[Tuple[str, str]]]:
        """Tag and attributes that classify back to ``block``'s type."""
        source_class = block.attrs.get("sourceClass")
        own = self.node_attrs(block.attrs, skip)
        if block.type == "unknown":
            return str(block.attrs.get("tag") or "div"), _classes(source_class) + own
        label = self.config.label_of(block)
        first: Optional[Tuple[str, List[Tuple[str, str]]]] = None
        for tag, rule_attrs, rule_class in self._candidates(block):
            attrs = _classes(rule_class, source_class) + own
            present = {name for name, _ in attrs}
            attrs += [a for a in rule_attrs if a[0] not in present]
            if first is None:
                first = (tag, attrs)
            found = self.classifier.classify(tag, dict(attrs), inline=tag in self.inline_tags)
            if found is not None and found.label == label:
                return tag, attrs
        return first

    def render_block(self, block: Block) -> str:
        spec = self.config.block_types.get(block.type)
        skip = [spec.variant_attr] if spec is not None and spec.variant_attr else []
        if block.type == "unknown":
            skip.append("tag")
        tag, attrs = self.block_opening(block, skip)
        opening = _open(tag, attrs)

        content = spec.content if spec is not None else "blocks"
        if content == "table":
            inner = self._table_body(block)
        elif content == "none":
            inner = self._atomic_body(block)
        elif content == "inline":
            inner = "".join(self.render_run(run, code=bool(spec and spec.preserve_whitespace)) for run in block.runs)
        else:
            inner = "".join(self.render_block(child) for child in block.blocks)

        element = opening if tag in VOID_TAGS else f"{opening}{inner}</{tag}>"
        if content == "none" and block.attrs.get("marks"):
            # Atomic blocks that sat inside formatting are written inside it again.
            marks = [Mark(kind=m["kind"], attrs=m.get("attrs") or {}) for m in block.attrs["marks"]]
            element = self._wrap(marks, element)
        return element

    def _atomic_body(self, block: Block) -> str:
        parts = [_open("source", self.node_attrs(s)) for s in block.attrs.get("sources") or []]
        if block.attrs.get("fallback"):
            parts.append(escape(str(block.attrs["fallback"]), quote=False))
        return "".join(parts)

    def _table_body(self, block: Block) -> str:
        parts: List[str] = []
        if block.attrs.get("caption"):
            parts.append(f"<caption>{escape(str(block.attrs['caption']), quote=False)}</caption>")
        groups: List[Tuple[str, List[TableRow]]] = []
        for row in block.rows:
            section = row.attrs.get("section", "body")
            if not groups or groups[-1][0] != section:
                groups.append((section, []))
            groups[-1][1].append(row)
        for section, rows in groups:
            tag = {"head": "thead", "foot": "tfoot"}.get(section, "tbody")
            parts.append(f"<{tag}>{''.join(self._row(r) for r in rows)}</{tag}>")
        return "".join(parts)

    def _row(self, row: TableRow) -> str:
        attrs = _classes(row.attrs.get("sourceClass")) + self.node_attrs(row.attrs)
        return f"{_open('tr', attrs)}{''.join(self._cell(c) for c in row.cells)}</tr>"

    def _cell(self, cell: TableCell) -> str:
        tag = "th" if cell.header else "td"
        attrs = _classes(cell.attrs.get("sourceClass"))
        if cell.colspan > 1:
            attrs.append(("colspan", str(cell.colspan)))
        if cell.rowspan > 1:
            attrs.append(("rowspan", str(cell.rowspan)))
        attrs += self.node_attrs(cell.attrs)
        return f"{_open(tag, attrs)}{''.join(self.render_block(b) for b in cell.blocks)}</{tag}>"

    # --- Inline ---

    def render_run(self, run: TextRun, *, code: bool = False) -> str:
        text = escape(run.text, quote=False)
        if not code:
            text = text.replace("\n", "<br>")
        return self._wrap(run.marks, text)

    def _wrap(self, marks: Iterable[Mark], inner: str) -> str:
        # Canonical order from the outside in; the nearest mark wraps the text.
        for mark in reversed(list(marks)):
            tag, attrs = self.mark_tag(mark)
            inner = f"{_open(tag, attrs)}{inner}</{tag}>"
        return inner

    def mark_tag(self, mark: Mark) -> Tuple[str, List[Tuple[str, str]]]:
        rule = self._mark_rules.get(mark.kind)
        attrs = dict(mark.attrs)
        name = attrs.pop("name", None) if rule is not None and rule.multi_valued else None
        if rule is not None and rule.tags:
            rule_class = rule.classes[0] if rule.classes else None
            return rule.tags[0], _classes(rule_class, name, attrs.get("sourceClass")) + self.node_attrs(attrs)
        rule_class = name or (rule.classes[0] if rule is not None and rule.classes else mark.kind)
        return "span", _classes(rule_class, attrs.get("sourceClass")) + self.node_attrs(attrs)

    def render(self, document: Document) -> str:
        return "\n".join(self.render_block(block) for block in document.blocks)


def render_markup(document: Document, config: Optional[ConverterConfig] = None) -> str:
    """Write ``document`` back as HTML markup."""
    return MarkupWriter(config).render(document)
