"""
Final folding of converted blocks into a document and a conversion result.

:func:`normalize_blocks` cleans up what the event-driven builder produces:
spaces collapse across run boundaries, block edges are trimmed, adjacent runs
with identical canonical mark sets merge, and degenerate empty blocks go away
(unless ``preserve_empty`` is set).  :func:`assemble_document` wraps the
result together with the side-channel reports and applies the strict
quarantine policy.
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

from ..models.config import BlockTypeSpec, ConverterConfig
from ..models.document import Block, Document, TextRun
from ..models.result import ConversionFailure, ConversionResult, ConversionStatus
from ..utils.errors import ConversionError, QuarantineViolation
from .context import ConversionContext


def merge_runs(runs: Iterable[TextRun], *, preserve_whitespace: bool = False) -> List[TextRun]:
    merged: List[TextRun] = []
    for run in runs:
        text = run.text
        if not preserve_whitespace and merged and merged[-1].text.endswith(" ") and text.startswith(" "):
            text = text[1:]
        if not text:
            continue
        if merged and merged[-1].marks == run.marks:
            merged[-1] = TextRun(text=merged[-1].text + text, marks=run.marks)
        else:
            merged.append(TextRun(text=text, marks=run.marks))

    if preserve_whitespace:
        return merged
    while merged and not merged[0].text.lstrip(" "):
        merged.pop(0)
    if merged:
        merged[0] = TextRun(text=merged[0].text.lstrip(" "), marks=merged[0].marks)
    while merged and not merged[-1].text.rstrip(" "):
        merged.pop()
    if merged:
        merged[-1] = TextRun(text=merged[-1].text.rstrip(" "), marks=merged[-1].marks)
    return merged


def is_degenerate(block: Block, spec: BlockTypeSpec, config: ConverterConfig) -> bool:
    """True for a block with no children and no attributes worth keeping."""
    if config.preserve_empty or spec.content == "none" or block.children:
        return False
    return not any(key != spec.variant_attr for key in block.attrs)


def normalize_blocks(blocks: Sequence[Block], config: ConverterConfig) -> List[Block]:
    result: List[Block] = []
    for block in blocks:
        spec = config.block_types.get(block.type)
        if spec is None:
            result.append(block)
            continue
        if spec.content == "inline":
            children = merge_runs(block.runs, preserve_whitespace=spec.preserve_whitespace)
            block = Block(type=block.type, attrs=block.attrs, children=tuple(children))
        elif spec.content in ("blocks", "list"):
            block = Block(type=block.type, attrs=block.attrs, children=tuple(normalize_blocks(block.blocks, config)))
        if is_degenerate(block, spec, config):
            continue
        result.append(block)
    return result


def assemble_document(blocks: Sequence[Block], context: ConversionContext) -> ConversionResult:
    """Wrap converted blocks and reports; raises in strict quarantine mode."""
    if context.config.strict_quarantine and context.quarantine:
        raise QuarantineViolation(
            f"{len(context.quarantine)} unsafe node(s) quarantined in strict mode",
            count=len(context.quarantine),
        )
    return ConversionResult(
        status=ConversionStatus.SUCCESS,
        document=Document(blocks=tuple(blocks)),
        quarantine=list(context.quarantine),
        unmapped_tags=context.unmapped_tags,
        events=list(context.events),
    )


def failed_result(exc: ConversionError, context: Optional[ConversionContext] = None) -> ConversionResult:
    """A failure result; only strict-mode quarantine keeps its report."""
    quarantine = list(context.quarantine) if context is not None and isinstance(exc, QuarantineViolation) else []
    return ConversionResult(
        status=ConversionStatus.FAILURE,
        document=None,
        quarantine=quarantine,
        error=ConversionFailure(code=exc.code, message=str(exc)),
    )
