"""
Versioned configuration bundle for the converter.

Everything project-specific lives here as data: which inline tags or class
names produce which marks, which tag/class/attribute combinations map to
which block types, which elements are quarantined, and which ``data-*``
attribute schemas are typed.  The converter itself holds no knowledge of a
particular site's conventions.

A bundle is immutable once built and can be shared read-only by any number of
concurrent conversions.  It can be created in code or loaded from JSON (both
``snake_case`` names and the ``camelCase`` aliases are accepted)::

    cfg = ConverterConfig(
        block_rules=[BlockRule(type="quote(pull)", classes=["pull-quote"])],
        strict_quarantine=True,
    )
    cfg = ConverterConfig.from_file("config/converter_config.json")
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, Literal, Mapping, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

AttrType = Literal["str", "int", "float", "bool", "url"]
ContentModel = Literal["inline", "blocks", "list", "table", "none"]

_TYPE_REF = re.compile(r"^\s*([A-Za-z_][\w-]*)\s*(?:\(\s*([^()]*?)\s*\))?\s*$")


def _lower_all(values: Any) -> Any:
    if isinstance(values, str):
        return (values.lower(),)
    if values is None:
        return ()
    return tuple(str(v).lower() for v in values)


class MarkRule(BaseModel):
    """Maps inline tags and/or class names to one mark kind.

    ``attrs`` lists the element attributes copied into the mark as typed
    values; ``required_attrs`` must be present and non-empty for the rule to
    apply (a link without ``href`` is not a link).
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    kind: str = Field(..., min_length=1)
    tags: Tuple[str, ...] = ()
    classes: Tuple[str, ...] = ()
    attrs: Dict[str, AttrType] = Field(default_factory=dict)
    required_attrs: Tuple[str, ...] = Field((), alias="requiredAttrs")
    multi_valued: bool = Field(False, alias="multiValued")

    @field_validator("tags", mode="before")
    @classmethod
    def _lower_tags(cls, v: Any) -> Any:
        return _lower_all(v)

    @model_validator(mode="after")
    def _needs_trigger(self) -> "MarkRule":
        if not self.tags and not self.classes:
            raise ValueError(f"mark rule {self.kind!r} needs at least one tag or class")
        return self


class BlockRule(BaseModel):
    """One entry of the ordered disambiguation rule set.

    The predicate is declarative: ``tags`` (empty means any non-inline tag),
    ``classes`` (any-of) and ``attrs`` (all must be present; a non-null value
    must match exactly).  ``type`` is a block type reference such as
    ``"quote(pull)"``.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    type: str
    tags: Tuple[str, ...] = ()
    classes: Tuple[str, ...] = ()
    attrs: Dict[str, Optional[str]] = Field(default_factory=dict)

    @field_validator("tags", mode="before")
    @classmethod
    def _lower_tags(cls, v: Any) -> Any:
        return _lower_all(v)

    @model_validator(mode="after")
    def _needs_predicate(self) -> "BlockRule":
        if not (self.tags or self.classes or self.attrs):
            raise ValueError(f"block rule {self.type!r} would match every element")
        return self

    def match(self, tag: str, classes: Sequence[str], attrs: Mapping[str, str]) -> Optional[Tuple[str, ...]]:
        """Return the classes consumed by this rule, or ``None`` if it does not match."""
        if self.tags and tag not in self.tags:
            return None
        consumed: Tuple[str, ...] = ()
        if self.classes:
            consumed = tuple(c for c in classes if c in self.classes)
            if not consumed:
                return None
        for name, expected in self.attrs.items():
            if name not in attrs:
                return None
            if expected is not None and attrs[name] != expected:
                return None
        return consumed


class BlockTypeSpec(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    content: ContentModel = "blocks"
    variant_attr: Optional[str] = Field(None, alias="variantAttr")
    variant_type: AttrType = Field("str", alias="variantType")
    default_variant: Optional[str] = Field(None, alias="defaultVariant")
    # Allowed variant values; empty means any.
    variants: Tuple[str, ...] = ()
    typed_attrs: Dict[str, AttrType] = Field(default_factory=dict, alias="typedAttrs")
    inline_ok: bool = Field(False, alias="inlineOk")
    preserve_whitespace: bool = Field(False, alias="preserveWhitespace")


class EmbedSchema(BaseModel):
    """Typed fields for ``data-*`` attributes of one embed/graph type.

    The schema applies to an element whose block type or mark kind is listed
    in ``applies_to``, or whose attributes match every ``discriminator``
    entry.  Field names are given without the data prefix.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str = Field(..., min_length=1)
    applies_to: Tuple[str, ...] = Field((), alias="appliesTo")
    discriminator: Dict[str, str] = Field(default_factory=dict)
    data_fields: Dict[str, AttrType] = Field(default_factory=dict, alias="fields")

    def applies(self, owner: str, attrs: Mapping[str, str]) -> bool:
        if owner in self.applies_to:
            return True
        if self.discriminator:
            return all(attrs.get(k) == v for k, v in self.discriminator.items())
        return False


# --- Defaults ---

DEFAULT_MARK_RULES: Tuple[MarkRule, ...] = (
    MarkRule(kind="bold", tags=("b", "strong")),
    MarkRule(kind="italic", tags=("em", "i")),
    MarkRule(kind="underline", tags=("u", "ins")),
    MarkRule(kind="strikethrough", tags=("s", "strike", "del")),
    MarkRule(kind="code", tags=("code", "kbd", "samp", "tt")),
    MarkRule(kind="subscript", tags=("sub",)),
    MarkRule(kind="superscript", tags=("sup",)),
    MarkRule(kind="highlight", tags=("mark",)),
    MarkRule(kind="link", tags=("a",), attrs={"href": "url", "title": "str"}, required_attrs=("href",)),
)

DEFAULT_BLOCK_TAGS: Dict[str, str] = {
    "p": "paragraph",
    "h1": "heading(1)",
    "h2": "heading(2)",
    "h3": "heading(3)",
    "h4": "heading(4)",
    "h5": "heading(5)",
    "h6": "heading(6)",
    "blockquote": "quote(block)",
    "pre": "code_block",
    "table": "table",
    "img": "image",
    "iframe": "embed",
    "video": "embed",
    "audio": "embed",
    "ul": "bulleted_list",
    "ol": "ordered_list",
    "li": "list_item",
    "hr": "divider",
    "figcaption": "paragraph",
}

_MEDIA_ATTRS: Dict[str, AttrType] = {"src": "url", "title": "str", "width": "int", "height": "int"}

DEFAULT_BLOCK_TYPES: Dict[str, BlockTypeSpec] = {
    "paragraph": BlockTypeSpec(content="inline"),
    "heading": BlockTypeSpec(
        content="inline", variant_attr="level", variant_type="int", default_variant="1",
        variants=("1", "2", "3", "4", "5", "6"),
    ),
    "quote": BlockTypeSpec(content="blocks", variant_attr="kind", default_variant="block"),
    "code_block": BlockTypeSpec(content="inline", preserve_whitespace=True),
    "table": BlockTypeSpec(content="table"),
    "image": BlockTypeSpec(content="none", inline_ok=True, typed_attrs={**_MEDIA_ATTRS, "alt": "str"}),
    "embed": BlockTypeSpec(content="none", inline_ok=True, typed_attrs=dict(_MEDIA_ATTRS)),
    "unknown": BlockTypeSpec(content="blocks", variant_attr="tag"),
    "bulleted_list": BlockTypeSpec(content="list"),
    "ordered_list": BlockTypeSpec(content="list", typed_attrs={"start": "int", "reversed": "bool"}),
    "list_item": BlockTypeSpec(content="blocks", typed_attrs={"value": "int"}),
    "divider": BlockTypeSpec(content="none"),
}

DEFAULT_SCRIPT_DENYLIST: Tuple[str, ...] = (
    "script", "style", "object", "applet", "embed", "frame", "frameset", "base",
)

DEFAULT_CONTAINER_TAGS: Tuple[str, ...] = (
    "html", "body", "div", "section", "article", "main", "header", "footer",
    "aside", "nav", "figure", "center", "hgroup", "tbody", "thead", "tfoot",
)

DEFAULT_INLINE_TAGS: Tuple[str, ...] = (
    "a", "abbr", "acronym", "b", "bdi", "bdo", "big", "cite", "code", "data",
    "del", "dfn", "em", "font", "i", "ins", "kbd", "label", "mark", "q", "s",
    "samp", "small", "span", "strike", "strong", "sub", "sup", "time", "tt",
    "u", "var", "nobr",
)

DEFAULT_IGNORED_TAGS: Tuple[str, ...] = ("head", "title", "meta", "link", "template")

DEFAULT_URL_ATTRIBUTES: Tuple[str, ...] = (
    "href", "src", "action", "formaction", "poster", "background", "cite", "longdesc", "xlink:href",
)

DEFAULT_UNSAFE_SCHEMES: Tuple[str, ...] = (
    "javascript:",
    "vbscript:",
    "data:text/html",
    "data:text/javascript",
    "data:application/javascript",
    "data:application/x-javascript",
)


def _merge_defaults(defaults: Mapping[str, Any], value: Any) -> Dict[str, Any]:
    # User entries override defaults; a null entry removes the default.
    merged: Dict[str, Any] = dict(defaults)
    for key, item in (value or {}).items():
        if item is None:
            merged.pop(key, None)
        else:
            merged[key] = item
    return merged


class ConverterConfig(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    version: str = "1"
    mark_rules: Tuple[MarkRule, ...] = Field(DEFAULT_MARK_RULES, alias="markRules")
    block_rules: Tuple[BlockRule, ...] = Field((), alias="blockDisambiguationRules")
    block_tags: Dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_BLOCK_TAGS), alias="blockTags")
    block_types: Dict[str, BlockTypeSpec] = Field(
        default_factory=lambda: dict(DEFAULT_BLOCK_TYPES), alias="blockTypes"
    )
    script_denylist: Tuple[str, ...] = Field(DEFAULT_SCRIPT_DENYLIST, alias="scriptDenylist")
    embed_schemas: Tuple[EmbedSchema, ...] = Field((), alias="embedSchemas")
    strict_quarantine: bool = Field(False, alias="strictQuarantine")
    max_depth: int = Field(256, ge=1, alias="maxDepth")
    max_table_cells: int = Field(10_000, ge=1, alias="maxTableCells")
    preserve_empty: bool = Field(False, alias="preserveEmpty")
    container_tags: Tuple[str, ...] = Field(DEFAULT_CONTAINER_TAGS, alias="containerTags")
    inline_tags: Tuple[str, ...] = Field(DEFAULT_INLINE_TAGS, alias="inlineTags")
    ignored_tags: Tuple[str, ...] = Field(DEFAULT_IGNORED_TAGS, alias="ignoredTags")
    url_attributes: Tuple[str, ...] = Field(DEFAULT_URL_ATTRIBUTES, alias="urlAttributes")
    unsafe_url_schemes: Tuple[str, ...] = Field(DEFAULT_UNSAFE_SCHEMES, alias="unsafeUrlSchemes")
    data_prefix: str = Field("data-", alias="dataPrefix")

    @field_validator("block_tags", mode="before")
    @classmethod
    def _merge_block_tags(cls, v: Any) -> Dict[str, Any]:
        return {k.lower(): item for k, item in _merge_defaults(DEFAULT_BLOCK_TAGS, v).items()}

    @field_validator("block_types", mode="before")
    @classmethod
    def _merge_block_types(cls, v: Any) -> Dict[str, Any]:
        return _merge_defaults(DEFAULT_BLOCK_TYPES, v)

    @field_validator(
        "script_denylist", "container_tags", "inline_tags", "ignored_tags", "url_attributes",
        mode="before",
    )
    @classmethod
    def _lower_tag_lists(cls, v: Any) -> Any:
        return _lower_all(v)

    @model_validator(mode="after")
    def _check_type_refs(self) -> "ConverterConfig":
        for ref in list(self.block_tags.values()) + [r.type for r in self.block_rules]:
            self.parse_type_ref(ref)
        return self

    # --- Type references ---

    def parse_type_ref(self, ref: str) -> Tuple[str, Optional[str]]:
        """Split ``"quote(pull)"`` into ``("quote", "pull")`` applying defaults."""
        m = _TYPE_REF.match(ref or "")
        if not m:
            raise ValueError(f"Invalid block type reference: {ref!r}")
        name, variant = m.group(1), m.group(2) or None
        spec = self.block_types.get(name)
        if spec is None:
            raise ValueError(f"Unknown block type in reference {ref!r}")
        if variant is not None and spec.variant_attr is None:
            raise ValueError(f"Block type {name!r} takes no variant: {ref!r}")
        if variant is None:
            variant = spec.default_variant
        if spec.variants and variant not in spec.variants:
            raise ValueError(f"Variant of {ref!r} must be one of {', '.join(spec.variants)}")
        return name, variant

    def normalize_ref(self, ref: str) -> str:
        name, variant = self.parse_type_ref(ref)
        return f"{name}({variant})" if variant is not None else name

    def label_of(self, block: Any) -> str:
        """Human readable type label of a block, e.g. ``heading(2)``."""
        spec = self.block_types.get(block.type)
        variant = None
        if spec is not None and spec.variant_attr:
            variant = block.attrs.get(spec.variant_attr)
        return f"{block.type}({variant})" if variant is not None else block.type

    # --- Loading ---

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]] = None, **overrides: Any) -> "ConverterConfig":
        payload: Dict[str, Any] = dict(data or {})
        for name, value in overrides.items():
            if value is None:
                continue
            field = cls.model_fields.get(name)
            if field is not None and field.alias:
                # An override beats the file's camelCase spelling of the same field.
                payload.pop(field.alias, None)
            payload[name] = value
        return cls.model_validate(payload)

    @classmethod
    def from_file(cls, path: str, **overrides: Any) -> "ConverterConfig":
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return cls.from_mapping(data, **overrides)
