"""
Legacy HTML tree -> canonical rich-text document.

:func:`convert_tree` is the public entry point.  It runs one
:class:`BlockConverter` over the tree and folds the result with the document
assembler.  Table cells (and content foster-parented out of tables) are
converted by calling :meth:`BlockConverter.convert_subtree` again, so inline
content gets identical treatment wherever it appears.

The builder is a small stack machine over the walker's events:

* containers (``div``, ``section``...) are transparent,
* loose inline content under a block-level parent is wrapped in an implicit
  paragraph (and in an implicit list item under a list),
* a block that shows up inside inline content splits the enclosing
  paragraph; the pieces before and after keep their formatting,
* images and embeds may sit inline and split paragraphs without complaint,
* unknown non-inline tags become ``unknown`` blocks that keep their tag.

Conversion is pure: no I/O, no shared state.  A structural limit or a
strict-mode quarantine finding aborts the document and yields a failure
result without any partial tree.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from bs4 import Tag

from ..extractors.markup import parse_markup
from ..models.config import BlockTypeSpec, ConverterConfig
from ..models.document import Block, TextRun
from ..models.result import ConversionResult
from ..utils.errors import ConversionError
from .assembler import assemble_document, failed_result, normalize_blocks
from .attributes import AttributeExtractor, coerce_variant
from .blocks import BlockClassifier, Classification
from .context import ConversionContext
from .marks import Contribution, MarkResolver
from .quarantine import ScriptQuarantine
from .tables import TableConverter
from .walker import EventKind, TreeWalker, WalkEvent, collapse_whitespace

_MEDIA_CHILDREN = frozenset({"source", "track"})


class _Frame:
    __slots__ = (
        "role", "tag", "path", "type_name", "spec", "attrs", "children", "emit",
        "blocks_target", "host", "implicit", "marks", "segments", "produced",
    )

    def __init__(self, role: str, tag: Optional[str] = None, path: Tuple[int, ...] = ()) -> None:
        self.role = role  # root | container | block | inline
        self.tag = tag
        self.path = path
        self.type_name: Optional[str] = None
        self.spec: Optional[BlockTypeSpec] = None
        self.attrs: Dict[str, Any] = {}
        self.children: List[Any] = []
        self.emit: List[Block] = []
        self.blocks_target: List[Block] = self.children
        self.host: Optional["_Frame"] = None
        self.implicit = False
        self.marks: tuple = ()
        self.segments = 0
        self.produced = False

    def accepts(self, kind: str) -> bool:
        """Whether an implicit frame can hold an element of ``kind``."""
        if self.type_name == "paragraph":
            return kind == "inline"
        if self.spec is not None and self.spec.content == "list":
            return kind == "list_item"
        return kind != "list_item"

    @property
    def is_list(self) -> bool:
        return self.role == "block" and self.spec is not None and self.spec.content == "list"


class _Builder:
    def __init__(self, converter: "BlockConverter", walker: TreeWalker) -> None:
        self.cv = converter
        self.walker = walker
        self.output: List[Block] = []
        root = _Frame("root")
        root.blocks_target = self.output
        self.stack: List[_Frame] = [root]

    @property
    def top(self) -> _Frame:
        return self.stack[-1]

    def run(self) -> List[Block]:
        for event in self.cv.quarantine.filter(self.walker):
            if event.kind is EventKind.TEXT:
                self._add_text(event.text, event)
            elif event.kind is EventKind.ENTER:
                self._on_enter(event)
            else:
                self._on_exit()
        while len(self.stack) > 1:
            self._close_top()
        return self.output

    # --- Events ---

    def _on_enter(self, ev: WalkEvent) -> None:
        cv = self.cv
        tag = ev.tag or ""
        if tag in cv.ignored_tags:
            self.walker.prune()
            cv.context.record_event("ignored_element", ev.path, tag, attrs=ev.attrs)
            return
        if tag in ("br", "wbr"):
            self.walker.prune()
            if ev.attrs:
                cv.context.record_event("void_element_attributes", ev.path, tag, attrs=ev.attrs)
            if tag == "br":
                self._add_text("\n", ev)
            return

        inline = tag in cv.inline_tags
        cls = cv.classifier.classify(tag, ev.attrs, inline=inline)
        if cls is not None:
            if cls.spec.content == "table":
                self.walker.prune()
                self._emit_table(ev, cls)
            elif cls.spec.content == "none":
                self.walker.prune()
                self._emit_atomic(ev, cls)
            else:
                self._open_block(ev, cls)
            return
        if tag in cv.container_tags:
            self._open_container(ev)
        elif inline or self.top.host is not None:
            self._open_inline(ev)
        else:
            self._open_unknown(ev)

    def _on_exit(self) -> None:
        while self.top.implicit:
            self._close_top()
        if len(self.stack) > 1:
            self._close_top()

    def _add_text(self, text: str, ev: WalkEvent) -> None:
        if self.top.host is None:
            if not text.strip():
                return
            self._ensure_host(ev)
        marks = self.cv.marks.resolve(self._inline_stack())
        self.top.host.children.append(TextRun(text=text, marks=marks))
        if text.strip():
            self._mark_produced()

    def _mark_produced(self) -> None:
        for frame in reversed(self.stack):
            if frame.role != "inline":
                break
            frame.produced = True

    # --- Frames ---

    def _inline_stack(self) -> List[Contribution]:
        stack: List[Contribution] = []
        for frame in reversed(self.stack):
            if frame.role != "inline":
                break
            stack.append((frame.path, frame.tag or "", frame.marks))
        return stack

    def _push_block(
        self,
        tag: Optional[str],
        path: Tuple[int, ...],
        type_name: str,
        spec: BlockTypeSpec,
        attrs: Dict[str, Any],
        emit: List[Block],
        implicit: bool = False,
    ) -> _Frame:
        frame = _Frame("block", tag, path)
        frame.type_name = type_name
        frame.spec = spec
        frame.attrs = attrs
        frame.emit = emit
        frame.implicit = implicit
        frame.blocks_target = frame.children if spec.content in ("blocks", "list") else emit
        frame.host = frame if spec.content == "inline" else None
        self.stack.append(frame)
        return frame

    def _push_implicit(self, ref: str) -> _Frame:
        name, variant = self.cv.config.parse_type_ref(ref)
        spec = self.cv.config.block_types[name]
        attrs: Dict[str, Any] = {}
        if spec.variant_attr and variant is not None:
            attrs[spec.variant_attr] = coerce_variant(variant, spec)
        parent = self.top
        return self._push_block(None, parent.path, name, spec, attrs, parent.blocks_target, implicit=True)

    def _close_implicit(self, kind: str) -> None:
        while self.top.implicit and not self.top.accepts(kind):
            self._close_top()

    def _close_top(self) -> None:
        frame = self.stack.pop()
        if frame.role == "inline" and frame.marks and frame.attrs and not frame.produced:
            # Its marks never reached a run, so the attributes go to the events.
            self.cv.context.record_event("empty_inline_element", frame.path, frame.tag, attrs=frame.attrs)
        if frame.role != "block":
            return
        if frame.spec.content == "inline":
            self._flush_segment(frame)
        else:
            frame.emit.append(self._build(frame))

    def _flush_segment(self, host: _Frame) -> None:
        # The first segment is always emitted; later ones only when non-empty.
        if host.segments == 0 or host.children:
            host.emit.append(self._build(host))
        host.segments += 1
        host.children = []

    @staticmethod
    def _build(frame: _Frame) -> Block:
        return Block(type=frame.type_name, attrs=frame.attrs, children=tuple(frame.children))

    def _ensure_host(self, ev: WalkEvent) -> None:
        self._close_implicit("inline")
        if self.top.host is not None:
            return
        if self.top.is_list:
            self.cv.context.record_event(
                "malformed_nesting", ev.path, ev.tag, parent=self.top.tag, wrapped_in="list_item"
            )
            self._push_implicit("list_item")
        self._push_implicit("paragraph")

    def _block_slot(self, ev: WalkEvent, kind: str, inline_ok: bool = False) -> List[Block]:
        """Close or split whatever cannot contain a block and return where it goes."""
        self._close_implicit(kind)
        top = self.top
        if top.host is not None:
            host = top.host
            if host.implicit and top is host:
                self._close_top()
            else:
                if not inline_ok:
                    inline = [f.tag for f in self.stack[self.stack.index(host) + 1:]]
                    self.cv.context.record_event(
                        "malformed_nesting", ev.path, ev.tag,
                        parent=host.tag or host.type_name, inline=inline, action="split",
                    )
                self._flush_segment(host)

        top = self.top
        if kind == "list_item" and not top.is_list:
            self.cv.context.record_event(
                "malformed_nesting", ev.path, ev.tag, parent=top.tag, wrapped_in="bulleted_list"
            )
            self._push_implicit("bulleted_list")
        elif kind != "list_item" and top.is_list:
            self.cv.context.record_event(
                "malformed_nesting", ev.path, ev.tag, parent=top.tag, wrapped_in="list_item"
            )
            self._push_implicit("list_item")
        return self.top.blocks_target

    # --- Element handlers ---

    def _block_attrs(self, ev: WalkEvent, cls: Classification) -> Dict[str, Any]:
        attrs: Dict[str, Any] = {}
        if cls.spec.variant_attr and cls.variant is not None:
            attrs[cls.spec.variant_attr] = coerce_variant(cls.variant, cls.spec)
        attrs.update(self.cv.extractor.extract(
            cls.type_name,
            ev.attrs,
            path=ev.path,
            tag=ev.tag,
            typed=cls.spec.typed_attrs,
            classes=cls.source_class,
        ))
        return attrs

    def _open_block(self, ev: WalkEvent, cls: Classification) -> None:
        target = self._block_slot(ev, cls.type_name, cls.spec.inline_ok)
        self._push_block(ev.tag, ev.path, cls.type_name, cls.spec, self._block_attrs(ev, cls), target)

    def _open_container(self, ev: WalkEvent) -> None:
        if ev.attrs:
            self.cv.context.record_event("container_flattened", ev.path, ev.tag, attrs=ev.attrs)
        target = self._block_slot(ev, "container")
        frame = _Frame("container", ev.tag, ev.path)
        frame.blocks_target = target
        self.stack.append(frame)

    def _open_inline(self, ev: WalkEvent) -> None:
        self._ensure_host(ev)
        marks = self.cv.marks.marks_for(ev.tag, ev.attrs, ev.path)
        if not marks:
            self.cv.context.record_unmapped(ev.tag, ev.attrs, ev.path)
        parent = self.top
        frame = _Frame("inline", ev.tag, ev.path)
        frame.marks = marks
        frame.attrs = dict(ev.attrs)
        frame.host = parent.host
        frame.blocks_target = parent.blocks_target
        self.stack.append(frame)

    def _open_unknown(self, ev: WalkEvent) -> None:
        self.cv.context.record_unmapped(ev.tag, ev.attrs, ev.path)
        spec = self.cv.config.block_types.get("unknown")
        if spec is None:
            self._open_container(ev)
            return
        target = self._block_slot(ev, "unknown")
        attrs: Dict[str, Any] = {"tag": ev.tag}
        attrs.update(self.cv.extractor.extract("unknown", ev.attrs, path=ev.path, tag=ev.tag, typed=spec.typed_attrs))
        self._push_block(ev.tag, ev.path, "unknown", spec, attrs, target)

    def _emit_atomic(self, ev: WalkEvent, cls: Classification) -> None:
        marks = self.cv.marks.resolve(self._inline_stack()) if self.top.host is not None else ()
        target = self._block_slot(ev, cls.type_name, cls.spec.inline_ok)
        attrs = self._block_attrs(ev, cls)
        fallback, sources = self._atomic_content(ev)
        if fallback:
            attrs["fallback"] = fallback
        if sources:
            attrs["sources"] = sources
        if marks:
            attrs["marks"] = [m.to_dict() for m in marks]
            self._mark_produced()
        target.append(Block(type=cls.type_name, attrs=attrs))

    def _atomic_content(self, ev: WalkEvent) -> Tuple[str, List[Dict[str, Any]]]:
        """Fallback text and ``<source>`` entries of an atomic element."""
        element = ev.element
        if element is None or not element.contents:
            return "", []
        walker = self.cv.walker(element, ev.path, ev.depth)
        texts: List[str] = []
        sources: List[Dict[str, Any]] = []
        for sub in self.cv.quarantine.filter(walker):
            if sub.kind is EventKind.TEXT:
                texts.append(sub.text)
            elif sub.kind is EventKind.ENTER:
                if sub.tag in _MEDIA_CHILDREN:
                    walker.prune()
                    sources.append(self.cv.extractor.extract(
                        sub.tag, sub.attrs, path=sub.path, tag=sub.tag, typed={"src": "url", "type": "str"}
                    ))
                elif sub.attrs:
                    self.cv.context.record_event("container_flattened", sub.path, sub.tag, attrs=sub.attrs)
        return collapse_whitespace("".join(texts)).strip(), sources

    def _emit_table(self, ev: WalkEvent, cls: Classification) -> None:
        target = self._block_slot(ev, cls.type_name, cls.spec.inline_ok)
        fostered, table = self.cv.tables.convert(ev, cls.type_name, self._block_attrs(ev, cls))
        target.extend(fostered)
        target.append(table)


class BlockConverter:
    """Shared components of one document conversion.

    ``convert_subtree`` is the single block-conversion entry point used for
    the document root, every table cell and foster-parented table content.
    """

    def __init__(self, config: ConverterConfig, context: ConversionContext) -> None:
        self.config = config
        self.context = context
        self.extractor = AttributeExtractor(config, context)
        self.marks = MarkResolver(config, context, self.extractor)
        self.classifier = BlockClassifier(config)
        self.quarantine = ScriptQuarantine(config, context)
        self.tables = TableConverter(self)
        self.inline_tags = frozenset(config.inline_tags) | self.marks.mark_tags
        self.container_tags = frozenset(config.container_tags)
        self.ignored_tags = frozenset(config.ignored_tags)

    def walker(
        self, element: Tag, path: Tuple[int, ...] = (), depth: int = 0, *, include_root: bool = False
    ) -> TreeWalker:
        return TreeWalker(
            element,
            max_depth=self.config.max_depth,
            base_path=path,
            base_depth=depth,
            include_root=include_root,
        )

    def convert_subtree(
        self, element: Tag, path: Tuple[int, ...] = (), depth: int = 0, *, include_root: bool = False
    ) -> List[Block]:
        """Convert the children of ``element`` (or the element itself) to blocks."""
        walker = self.walker(element, path, depth, include_root=include_root)
        return normalize_blocks(_Builder(self, walker).run(), self.config)


def convert_tree(root: Tag, config: Optional[ConverterConfig] = None) -> ConversionResult:
    """Convert a parsed markup tree into a :class:`ConversionResult`.

    The children of ``root`` (usually a ``BeautifulSoup`` object) are
    converted.  Fatal conditions never raise: they produce a ``failure``
    result with ``document=None``.
    """
    config = config or ConverterConfig()
    context = ConversionContext(config)
    try:
        blocks = BlockConverter(config, context).convert_subtree(root)
        return assemble_document(blocks, context)
    except ConversionError as exc:
        return failed_result(exc, context)


def convert_html(html: str, config: Optional[ConverterConfig] = None) -> ConversionResult:
    """Parse ``html`` with the default parser collaborator and convert it."""
    return convert_tree(parse_markup(html or ""), config)
