"""
Table conversion.

Tables are converted in one pass over their subtree.  Row sections
(``thead``/``tfoot``) are remembered on the rows, cells are converted through
the regular block converter, and anything that is not part of the grid
(stray text, stray elements) is foster-parented in front of the table, the
way browsers do it.

Irregular grids are made rectangular: the logical width counts ``colspan``
and the cells ``rowspan`` carries into later rows, and short rows are padded
with empty paragraph cells.  Every repair is recorded as an event.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Set, Tuple

from ..models.document import Block, TableCell, TableRow, TextRun
from ..utils.errors import StructuralLimitExceeded
from .walker import EventKind, WalkEvent

if TYPE_CHECKING:
    from .converter import BlockConverter

_SECTIONS = {"thead": "head", "tbody": "body", "tfoot": "foot"}
_SPAN_RE = re.compile(r"\s*(\d+)")
MAX_COLSPAN = 1000
MAX_ROWSPAN = 65534


def empty_cell() -> TableCell:
    return TableCell(blocks=(Block(type="paragraph"),))


def _is_plain(block: Block) -> bool:
    """A paragraph whose text says everything there is to say about it."""
    return block.type == "paragraph" and not block.attrs and all(not run.marks for run in block.runs)


@dataclass
class _CellDraft:
    colspan: int
    rowspan: int  # 0 spans to the end of the table
    header: bool
    attrs: Dict[str, Any]
    blocks: Tuple[Block, ...]
    path: Tuple[int, ...] = ()

    def build(self) -> TableCell:
        return TableCell(
            colspan=self.colspan,
            rowspan=max(self.rowspan, 1),
            header=self.header,
            attrs=self.attrs,
            blocks=self.blocks,
        )


@dataclass
class _RowDraft:
    section: str
    attrs: Dict[str, Any] = field(default_factory=dict)
    cells: List[_CellDraft] = field(default_factory=list)

    def row_attrs(self) -> Dict[str, Any]:
        if self.section == "body":
            return self.attrs
        return {"section": self.section, **self.attrs}


class TableConverter:
    def __init__(self, converter: "BlockConverter") -> None:
        self.cv = converter

    def convert(self, ev: WalkEvent, type_name: str, attrs: Dict[str, Any]) -> Tuple[List[Block], Block]:
        """Convert one ``<table>`` element.

        Returns the foster-parented blocks that belong in front of the table
        and the table block itself.
        """
        cv = self.cv
        walker = cv.walker(ev.element, ev.path, ev.depth)
        limit = cv.config.max_table_cells
        attrs = dict(attrs)
        rows: List[_RowDraft] = []
        fostered: List[Block] = []
        section = "body"
        row: Optional[_RowDraft] = None
        cell_count = 0

        for sub in cv.quarantine.filter(walker):
            if sub.kind is EventKind.TEXT:
                text = sub.text.strip()
                if text:
                    self._misplaced(sub, ev.tag)
                    fostered.append(Block(type="paragraph", children=(TextRun(text=text),)))
                continue
            if sub.kind is EventKind.EXIT:
                if sub.tag == "tr":
                    row = None
                elif sub.tag in _SECTIONS:
                    section, row = "body", None
                continue

            tag = sub.tag
            if tag in _SECTIONS:
                section = _SECTIONS[tag]
                self._flattened(sub)
            elif tag == "tr":
                row = _RowDraft(section, cv.extractor.extract("table_row", sub.attrs, path=sub.path, tag=tag))
                rows.append(row)
            elif tag in ("td", "th"):
                walker.prune()
                if row is None:
                    cv.context.record_event(
                        "malformed_nesting", sub.path, tag, parent=ev.tag, wrapped_in="table_row"
                    )
                    row = _RowDraft(section)
                    rows.append(row)
                cell_count += 1
                if cell_count > limit:
                    raise StructuralLimitExceeded(
                        f"Table has more than max_table_cells={limit} cells", path=list(ev.path)
                    )
                row.cells.append(self._cell(sub))
            elif tag == "caption":
                walker.prune()
                blocks = cv.convert_subtree(sub.element, sub.path, sub.depth)
                caption = " ".join(b.text for b in blocks if b.text)
                if caption:
                    attrs["caption"] = caption
                if not all(_is_plain(b) for b in blocks):
                    cv.context.record_event(
                        "caption_flattened", sub.path, tag, content=[b.to_dict() for b in blocks]
                    )
                self._flattened(sub)
            elif tag == "colgroup":
                self._flattened(sub)
            elif tag == "col":
                walker.prune()
                self._flattened(sub)
            else:
                walker.prune()
                self._misplaced(sub, ev.tag)
                fostered.extend(cv.convert_subtree(sub.element, sub.path, sub.depth, include_root=True))

        return fostered, Block(type=type_name, attrs=attrs, children=tuple(self._grid(rows, ev, limit)))

    def _flattened(self, sub: WalkEvent) -> None:
        if sub.attrs:
            self.cv.context.record_event("container_flattened", sub.path, sub.tag, attrs=sub.attrs)

    def _misplaced(self, sub: WalkEvent, table_tag: Optional[str]) -> None:
        self.cv.context.record_event(
            "malformed_nesting", sub.path, sub.tag, parent=table_tag, action="moved_before_table"
        )

    def _cell(self, sub: WalkEvent) -> _CellDraft:
        blocks = self.cv.convert_subtree(sub.element, sub.path, sub.depth)
        attrs = self.cv.extractor.extract(
            "table_cell", sub.attrs, path=sub.path, tag=sub.tag, consumed=("colspan", "rowspan")
        )
        return _CellDraft(
            colspan=self._span(sub, "colspan", MAX_COLSPAN),
            rowspan=self._span(sub, "rowspan", MAX_ROWSPAN),
            header=sub.tag == "th",
            attrs=attrs,
            blocks=tuple(blocks) or empty_cell().blocks,
            path=sub.path,
        )

    def _span(self, sub: WalkEvent, name: str, limit: int) -> int:
        raw = sub.attrs.get(name)
        if raw is None:
            return 1
        match = _SPAN_RE.match(raw)
        value = None
        if match:
            digits = match.group(1).lstrip("0") or "0"
            # Anything longer than the limit's digit count is over the limit.
            value = int(digits) if len(digits) <= len(str(limit)) else limit + 1
        if value == 0 and name == "rowspan":
            return 0
        if value is not None and 1 <= value <= limit:
            return value
        self.cv.context.record_event(
            "attribute_coercion_failed", sub.path, sub.tag, attribute=name, value=raw, expected="int"
        )
        return limit if value is not None and value > limit else 1

    def _grid(self, rows: List[_RowDraft], ev: WalkEvent, limit: int) -> List[TableRow]:
        count = len(rows)
        occupied: List[Set[int]] = [set() for _ in rows]
        for r, row in enumerate(rows):
            col = 0
            for cell in row.cells:
                while col in occupied[r]:
                    col += 1
                remaining = count - r
                span = remaining if cell.rowspan == 0 else min(cell.rowspan, remaining)
                if cell.rowspan > span:
                    self.cv.context.record_event(
                        "irregular_table_grid", cell.path, None, rowspan=cell.rowspan, clamped_to=span
                    )
                cell.rowspan = span
                for taken in occupied[r:r + span]:
                    taken.update(range(col, col + cell.colspan))
                col += cell.colspan

        width = max((max(taken) + 1 for taken in occupied if taken), default=0)
        if width * count > limit:
            raise StructuralLimitExceeded(
                f"Table grid {count}x{width} exceeds max_table_cells={limit}", path=list(ev.path)
            )

        padded: List[int] = []
        built: List[TableRow] = []
        for r, row in enumerate(rows):
            missing = width - len(occupied[r])
            cells = [cell.build() for cell in row.cells]
            if missing:
                padded.append(r)
                cells.extend(empty_cell() for _ in range(missing))
            built.append(TableRow(attrs=row.row_attrs(), cells=tuple(cells)))
        if padded:
            self.cv.context.record_event("irregular_table_grid", ev.path, ev.tag, padded_rows=padded, width=width)
        return built
