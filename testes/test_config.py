import os
import sys

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import pytest
pytest.importorskip("bs4")

import json

from pydantic import ValidationError

from html2rich.models.config import BlockRule, ConverterConfig, MarkRule


def test_defaults():
    config = ConverterConfig()
    assert config.strict_quarantine is False
    assert config.max_depth == 256
    assert config.block_tags["blockquote"] == "quote(block)"
    assert "script" in config.script_denylist
    assert {r.kind for r in config.mark_rules} >= {"bold", "italic", "link"}


def test_camel_case_aliases_are_accepted():
    config = ConverterConfig.from_mapping({
        "strictQuarantine": True,
        "maxDepth": 10,
        "blockDisambiguationRules": [{"type": "quote(pull)", "classes": ["pull-quote"]}],
        "markRules": [{"kind": "link", "tags": ["A"], "requiredAttrs": ["href"]}],
    })
    assert config.strict_quarantine is True
    assert config.max_depth == 10
    assert config.block_rules[0].type == "quote(pull)"
    assert config.mark_rules[0].tags == ("a",)
    assert config.mark_rules[0].required_attrs == ("href",)


def test_overrides_beat_file_values():
    config = ConverterConfig.from_mapping({"strictQuarantine": False}, strict_quarantine=True)
    assert config.strict_quarantine is True


def test_block_tags_merge_over_defaults_and_null_removes():
    config = ConverterConfig(block_tags={"aside": "quote(aside)", "hr": None})
    assert config.block_tags["aside"] == "quote(aside)"
    assert config.block_tags["p"] == "paragraph"
    assert "hr" not in config.block_tags


def test_type_refs():
    config = ConverterConfig()
    assert config.parse_type_ref("heading(2)") == ("heading", "2")
    assert config.parse_type_ref("heading") == ("heading", "1")
    assert config.parse_type_ref("quote") == ("quote", "block")
    assert config.parse_type_ref("paragraph") == ("paragraph", None)
    assert config.normalize_ref(" quote ( pull ) ") == "quote(pull)"
    with pytest.raises(ValueError):
        config.parse_type_ref("paragraph(big)")
    with pytest.raises(ValueError):
        config.parse_type_ref("sidebar")


def test_invalid_rule_references_are_rejected():
    with pytest.raises(ValidationError):
        ConverterConfig(block_rules=[BlockRule(type="callout", classes=["note"])])
    with pytest.raises(ValidationError):
        BlockRule(type="quote")
    with pytest.raises(ValidationError):
        MarkRule(kind="bold")


def test_config_is_immutable():
    config = ConverterConfig()
    with pytest.raises(ValidationError):
        config.max_depth = 3


def test_from_file(tmp_path):
    path = tmp_path / "bundle.json"
    path.write_text(json.dumps({"version": "7", "maxTableCells": 9}), encoding="utf-8")
    config = ConverterConfig.from_file(str(path), max_depth=12)
    assert config.version == "7"
    assert config.max_table_cells == 9
    assert config.max_depth == 12


def test_shipped_config_bundle_loads():
    config = ConverterConfig.from_file(os.path.join(PROJECT_ROOT, "config", "converter_config.json"))
    assert [s.name for s in config.embed_schemas] == ["tweet", "video"]
    assert config.normalize_ref(config.block_rules[0].type) == "quote(pull)"


@pytest.mark.parametrize("ref", ["heading(9)", "heading(0)", "heading(x)"])
def test_heading_level_outside_one_to_six_is_rejected(ref):
    with pytest.raises(ValidationError):
        ConverterConfig(block_rules=[BlockRule(type=ref, classes=["title"])])
    with pytest.raises(ValueError):
        ConverterConfig().parse_type_ref(ref)


def test_default_denylist():
    config = ConverterConfig()
    assert "base" in config.script_denylist and "embed" in config.script_denylist
    assert "form" not in config.script_denylist
    assert "base" not in config.ignored_tags
