"""
Canonical rich-text document model.

A :class:`Document` is an ordered sequence of :class:`Block` nodes.  Blocks
hold either inline :class:`TextRun` children, nested blocks, or (for tables)
:class:`TableRow` children.  Every node is a frozen pydantic model: once the
assembler has produced a document nothing in it is mutated again.

The canonical serialization produced by :meth:`Document.to_dict` is::

    {"blocks": [{"type": ..., "attrs": {...}, "children": [...]}]}

with text runs serialized as ``{"text": ..., "marks": [{"kind", "attrs"}]}``
and marks sorted by kind.  :func:`document_from_dict` is its inverse.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


def canonical_json(value: Any) -> str:
    """Stable JSON text for ``value`` used as a sort/equality key."""
    return json.dumps(value, sort_keys=True, ensure_ascii=False, default=str)


class Mark(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: str = Field(..., min_length=1)
    attrs: Dict[str, Any] = Field(default_factory=dict)

    @property
    def sort_key(self) -> Tuple[str, str]:
        return (self.kind, canonical_json(self.attrs))

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "attrs": dict(self.attrs)}


class TextRun(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str
    marks: Tuple[Mark, ...] = ()

    @field_validator("marks")
    @classmethod
    def _canonical_order(cls, v: Tuple[Mark, ...]) -> Tuple[Mark, ...]:
        # Identical marks collapse; the rest are ordered by kind then attrs.
        unique = {m.sort_key: m for m in v}
        return tuple(unique[key] for key in sorted(unique))

    def to_dict(self) -> Dict[str, Any]:
        return {"text": self.text, "marks": [m.to_dict() for m in self.marks]}


class TableCell(BaseModel):
    model_config = ConfigDict(frozen=True)

    colspan: int = Field(1, ge=1)
    rowspan: int = Field(1, ge=1)
    header: bool = False
    attrs: Dict[str, Any] = Field(default_factory=dict)
    blocks: Tuple["Block", ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        attrs: Dict[str, Any] = {
            "colspan": self.colspan,
            "rowspan": self.rowspan,
            "header": self.header,
        }
        attrs.update(self.attrs)
        return {
            "type": "table_cell",
            "attrs": attrs,
            "children": [b.to_dict() for b in self.blocks],
        }


class TableRow(BaseModel):
    model_config = ConfigDict(frozen=True)

    attrs: Dict[str, Any] = Field(default_factory=dict)
    cells: Tuple[TableCell, ...] = ()

    @property
    def width(self) -> int:
        """Number of grid columns covered by this row's own cells."""
        return sum(c.colspan for c in self.cells)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "table_row",
            "attrs": dict(self.attrs),
            "children": [c.to_dict() for c in self.cells],
        }


class Block(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str = Field(..., min_length=1)
    attrs: Dict[str, Any] = Field(default_factory=dict)
    children: Tuple[Union["Block", TextRun, TableRow], ...] = ()

    @property
    def runs(self) -> List[TextRun]:
        return [c for c in self.children if isinstance(c, TextRun)]

    @property
    def rows(self) -> List[TableRow]:
        return [c for c in self.children if isinstance(c, TableRow)]

    @property
    def blocks(self) -> List["Block"]:
        return [c for c in self.children if isinstance(c, Block)]

    @property
    def text(self) -> str:
        """Plain text of the block and all of its descendants."""
        parts: List[str] = []
        for child in self.children:
            if isinstance(child, TextRun):
                parts.append(child.text)
            elif isinstance(child, Block):
                parts.append(child.text)
            else:
                for cell in child.cells:
                    parts.extend(b.text for b in cell.blocks)
        return "".join(parts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "attrs": dict(self.attrs),
            "children": [c.to_dict() for c in self.children],
        }


class Document(BaseModel):
    model_config = ConfigDict(frozen=True)

    blocks: Tuple[Block, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {"blocks": [b.to_dict() for b in self.blocks]}

    def to_json(self, indent: Optional[int] = None) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=indent)


TableCell.model_rebuild()
Block.model_rebuild()


# --- Deserialization ---

_CELL_KEYS = ("colspan", "rowspan", "header")


def _child_from_dict(data: Dict[str, Any]) -> Union[Block, TextRun, TableRow]:
    if "text" in data and "type" not in data:
        marks = tuple(Mark(kind=m["kind"], attrs=m.get("attrs") or {}) for m in data.get("marks") or [])
        return TextRun(text=data["text"], marks=marks)
    if data.get("type") == "table_row":
        return TableRow(
            attrs=data.get("attrs") or {},
            cells=tuple(_cell_from_dict(c) for c in data.get("children") or []),
        )
    return block_from_dict(data)


def _cell_from_dict(data: Dict[str, Any]) -> TableCell:
    attrs = dict(data.get("attrs") or {})
    fields = {k: attrs.pop(k) for k in _CELL_KEYS if k in attrs}
    return TableCell(
        attrs=attrs,
        blocks=tuple(block_from_dict(b) for b in data.get("children") or []),
        **fields,
    )


def block_from_dict(data: Dict[str, Any]) -> Block:
    return Block(
        type=data["type"],
        attrs=data.get("attrs") or {},
        children=tuple(_child_from_dict(c) for c in data.get("children") or []),
    )


def document_from_dict(data: Dict[str, Any]) -> Document:
    """Rebuild a :class:`Document` from its canonical dict serialization."""
    return Document(blocks=tuple(block_from_dict(b) for b in data.get("blocks") or []))
