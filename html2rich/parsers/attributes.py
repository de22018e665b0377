"""
Attribute extraction into typed, schema-typed and verbatim buckets.

For every element the converter keeps, :class:`AttributeExtractor` builds the
node's attribute map:

* attributes declared for the owner (``typed``) are coerced to their declared
  type (``width`` -> ``int``),
* ``data-*`` attributes covered by a registered :class:`EmbedSchema` are
  coerced into ``attrs["data"]`` and the schema name is recorded under
  ``attrs["dataSchema"]``,
* every other attribute is kept verbatim under ``attrs["extra"]``,
* unconsumed classes are kept verbatim under ``attrs["sourceClass"]``.

Values that fail coercion are not dropped: they stay in ``extra`` and an
``attribute_coercion_failed`` event is recorded.
"""

from __future__ import annotations

from typing import Any, Collection, Dict, Mapping, Optional, Sequence

from pydantic import TypeAdapter, ValidationError

from ..models.config import BlockTypeSpec, ConverterConfig, EmbedSchema
from .context import ConversionContext

_ADAPTERS: Dict[str, TypeAdapter] = {
    "int": TypeAdapter(int),
    "float": TypeAdapter(float),
    "bool": TypeAdapter(bool),
}


def coerce(value: str, attr_type: str) -> Any:
    """Coerce an attribute string to ``attr_type``; raises ``ValidationError``."""
    if attr_type == "str":
        return value
    if attr_type == "url":
        return value.strip()
    text = value.strip()
    if attr_type == "bool" and text == "":
        # Boolean HTML attributes are true by presence.
        return True
    return _ADAPTERS[attr_type].validate_python(text)


def coerce_variant(variant: Optional[str], spec: BlockTypeSpec) -> Any:
    if variant is None:
        return None
    try:
        return coerce(variant, spec.variant_type)
    except ValidationError:
        return variant


def render_value(value: Any) -> str:
    """Inverse of :func:`coerce` for writing attribute values back as markup."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class AttributeExtractor:
    def __init__(self, config: ConverterConfig, context: ConversionContext) -> None:
        self.context = context
        self.prefix = config.data_prefix
        self.schemas = config.embed_schemas

    def schema_for(self, owner: str, attrs: Mapping[str, str]) -> Optional[EmbedSchema]:
        for schema in self.schemas:
            if schema.applies(owner, attrs):
                return schema
        return None

    def extract(
        self,
        owner: str,
        attrs: Mapping[str, str],
        *,
        path: Sequence[int] = (),
        tag: Optional[str] = None,
        typed: Optional[Mapping[str, str]] = None,
        consumed: Collection[str] = (),
        classes: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Build the attribute map of one node.

        ``owner`` is the block type name or mark kind used to select an embed
        schema.  ``consumed`` names attributes already represented elsewhere
        (e.g. ``colspan`` stored as a cell field).  ``classes`` overrides the
        class list kept under ``sourceClass`` when a rule consumed some of it.
        """
        typed = typed or {}
        schema = self.schema_for(owner, attrs)
        result: Dict[str, Any] = {}
        data: Dict[str, Any] = {}
        extra: Dict[str, str] = {}

        for name, value in attrs.items():
            if name == "class" or name in consumed:
                continue
            if name in typed:
                try:
                    result[name] = coerce(value, typed[name])
                except ValidationError:
                    extra[name] = value
                    self._coercion_failed(path, tag, name, value, typed[name])
                continue
            field = self._data_field(name, schema)
            if field is not None:
                try:
                    data[field] = coerce(value, schema.data_fields[field])
                except ValidationError:
                    extra[name] = value
                    self._coercion_failed(path, tag, name, value, schema.data_fields[field])
                continue
            extra[name] = value

        if data:
            result["data"] = data
            result["dataSchema"] = schema.name
        if extra:
            result["extra"] = extra
        source_class = attrs.get("class", "") if classes is None else classes
        if source_class:
            result["sourceClass"] = source_class
        return result

    def _data_field(self, name: str, schema: Optional[EmbedSchema]) -> Optional[str]:
        if schema is None or not name.startswith(self.prefix):
            return None
        field = name[len(self.prefix):]
        return field if field in schema.data_fields else None

    def _coercion_failed(self, path, tag, name: str, value: str, attr_type: str) -> None:
        self.context.record_event(
            "attribute_coercion_failed", path, tag, attribute=name, value=value, expected=attr_type
        )
