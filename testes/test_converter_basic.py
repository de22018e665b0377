import os
import sys

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import pytest
pytest.importorskip("bs4")

import json

from html2rich.models.config import BlockRule, ConverterConfig
from html2rich.parsers.converter import convert_html


def nodes_of_type(doc, t):
    return [b for b in doc.blocks if b.type == t]


def marks_of(run):
    return [m.kind for m in run.marks]


def test_paragraph_and_heading_and_link():
    html = """
    <h2>Title</h2>
    <p>Hello <strong>world</strong> <a href="https://ex.com">link</a>.</p>
    """
    result = convert_html(html)
    assert result.ok
    hs = nodes_of_type(result.document, "heading")
    ps = nodes_of_type(result.document, "paragraph")
    assert len(hs) == 1 and hs[0].attrs["level"] == 2
    assert len(ps) == 1
    assert ps[0].text == "Hello world link."
    links = [r for r in ps[0].runs if "link" in marks_of(r)]
    assert links[0].marks[0].attrs == {"href": "https://ex.com"}


def test_nested_marks_resolve_to_flat_sorted_set():
    result = convert_html("<p><b>bold <i>both</i></b> plain</p>")
    runs = result.document.blocks[0].runs
    assert [r.text for r in runs] == ["bold ", "both", " plain"]
    assert marks_of(runs[0]) == ["bold"]
    assert marks_of(runs[1]) == ["bold", "italic"]
    assert marks_of(runs[2]) == []


def test_bold_italic_link_nesting_gives_one_run():
    result = convert_html('<p><b><em><a href="https://example.com">Example</a></em></b></p>')
    (block,) = result.document.blocks
    (run,) = block.runs
    assert run.text == "Example"
    assert marks_of(run) == ["bold", "italic", "link"]
    assert run.marks[2].attrs == {"href": "https://example.com"}


def test_repeated_mark_collapses_and_runs_merge():
    result = convert_html("<b>foo<b>bar</b></b>")
    blocks = result.document.blocks
    assert len(blocks) == 1 and blocks[0].type == "paragraph"
    assert len(blocks[0].runs) == 1
    run = blocks[0].runs[0]
    assert run.text == "foobar"
    assert marks_of(run) == ["bold"]


def test_top_level_inline_siblings_coalesce_into_one_paragraph():
    html = '<span>Olá</span> <a href="https://x">mundo</a> <span>!</span>'
    doc = convert_html(html).document
    assert len(doc.blocks) == 1 and doc.blocks[0].type == "paragraph"
    assert doc.blocks[0].text == "Olá mundo !"


def test_list_and_blockquote_and_divider():
    html = """
    <ul><li>um</li><li>dois</li></ul>
    <blockquote>frase</blockquote>
    <hr/>
    """
    doc = convert_html(html).document
    blists = nodes_of_type(doc, "bulleted_list")
    assert len(blists) == 1
    assert [item.type for item in blists[0].blocks] == ["list_item", "list_item"]
    assert blists[0].blocks[1].text == "dois"
    bq = nodes_of_type(doc, "quote")
    assert len(bq) == 1 and bq[0].attrs["kind"] == "block"
    assert bq[0].blocks[0].type == "paragraph"
    assert len(nodes_of_type(doc, "divider")) == 1


def test_ordered_list_typed_attributes():
    doc = convert_html('<ol start="3" reversed><li value="7">x</li></ol>').document
    ol = doc.blocks[0]
    assert ol.type == "ordered_list"
    assert ol.attrs == {"start": 3, "reversed": True}
    assert ol.blocks[0].attrs == {"value": 7}


def test_pull_quote_rule_beats_tag_mapping():
    config = ConverterConfig(block_rules=[BlockRule(type="quote(pull)", classes=["pull-quote"])])
    result = convert_html(
        '<blockquote class="pull-quote wide">Said</blockquote><blockquote>Plain</blockquote>', config
    )
    pull, plain = result.document.blocks
    assert config.label_of(pull) == "quote(pull)"
    assert pull.attrs == {"kind": "pull", "sourceClass": "wide"}
    assert config.label_of(plain) == "quote(block)"


def test_first_matching_rule_wins():
    config = ConverterConfig(block_rules=[
        BlockRule(type="quote(pull)", classes=["pull-quote"]),
        BlockRule(type="quote(aside)", tags=["blockquote"], classes=["pull-quote"]),
    ])
    doc = convert_html('<blockquote class="pull-quote">x</blockquote>', config).document
    assert doc.blocks[0].attrs["kind"] == "pull"


def test_code_block_preserves_whitespace():
    doc = convert_html("<pre><code>line1\n  line2</code></pre>").document
    code = nodes_of_type(doc, "code_block")
    assert len(code) == 1
    assert code[0].text == "line1\n  line2"
    assert marks_of(code[0].runs[0]) == ["code"]


def test_whitespace_collapses_outside_pre():
    doc = convert_html("<p>  a \n\t b   <i> c </i>  </p>").document
    assert doc.blocks[0].text == "a b c"


def test_line_break_becomes_newline():
    doc = convert_html("<p>one<br>two</p>").document
    assert doc.blocks[0].text == "one\ntwo"


def test_line_break_attributes_are_reported():
    result = convert_html('<p>a<br class="clear-both">b<wbr id="w1">c</p>')
    assert result.document.blocks[0].text == "a\nbc"
    events = result.events_of("void_element_attributes")
    assert [(e.tag, e.detail["attrs"]) for e in events] == [
        ("br", {"class": "clear-both"}),
        ("wbr", {"id": "w1"}),
    ]
    assert "clear-both" in json.dumps(result.to_dict())


def test_plain_line_break_records_nothing():
    result = convert_html("<p>a<br>b</p>")
    assert result.events == []


@pytest.mark.parametrize("html, tag, attrs", [
    ('<p>x<b id="anchor-k"></b></p>', "b", {"id": "anchor-k"}),
    ('<p>x<a href="https://lost.example"></a></p>', "a", {"href": "https://lost.example"}),
])
def test_formatting_without_text_keeps_attributes_in_events(html, tag, attrs):
    result = convert_html(html)
    assert result.document.blocks[0].text == "x"
    (event,) = result.events_of("empty_inline_element")
    assert event.tag == tag and event.detail["attrs"] == attrs
    assert list(attrs.values())[0] in json.dumps(result.to_dict())


def test_formatting_with_text_records_no_empty_event():
    result = convert_html('<p><a href="https://ok.example"><b>x</b></a></p>')
    assert result.events_of("empty_inline_element") == []


def test_unknown_tag_becomes_unknown_block_and_is_reported():
    result = convert_html('<custom-box id="b1">text</custom-box>')
    block = result.document.blocks[0]
    assert block.type == "unknown"
    assert block.attrs == {"tag": "custom-box", "extra": {"id": "b1"}}
    assert block.blocks[0].text == "text"
    assert [u.tag for u in result.unmapped_tags] == ["custom-box"]


def test_unmapped_inline_keeps_text_and_reports_tag():
    result = convert_html('<p>a <span class="x">b</span> <span>c</span></p>')
    assert result.document.blocks[0].text == "a b c"
    assert len(result.unmapped_tags) == 1
    entry = result.unmapped_tags[0]
    assert entry.tag == "span" and entry.count == 2
    assert entry.sample_attrs == {"class": "x"}
    assert len(result.events_of("unmapped_element")) == 2


def test_non_content_elements_are_ignored_with_event():
    result = convert_html("<head><title>T</title></head><p>body</p><!-- note -->")
    assert [b.text for b in result.document.blocks] == ["body"]
    assert [e.tag for e in result.events_of("ignored_element")] == ["head"]


def test_container_attributes_are_reported():
    result = convert_html('<div id="main" class="wrap"><p>x</p></div><div><p>y</p></div>')
    assert [b.text for b in result.document.blocks] == ["x", "y"]
    events = result.events_of("container_flattened")
    assert len(events) == 1
    assert events[0].detail["attrs"] == {"id": "main", "class": "wrap"}


def test_empty_input_gives_empty_document():
    result = convert_html("")
    assert result.ok
    assert result.document.blocks == ()


def test_empty_blocks_are_dropped_unless_preserved():
    html = "<p></p><p>  </p><h2></h2><p>x</p>"
    assert [b.type for b in convert_html(html).document.blocks] == ["paragraph"]
    kept = convert_html(html, ConverterConfig(preserve_empty=True)).document.blocks
    assert [b.type for b in kept] == ["paragraph", "paragraph", "heading", "paragraph"]


def test_empty_block_with_attributes_is_kept():
    doc = convert_html('<p id="anchor"></p>').document
    assert len(doc.blocks) == 1
    assert doc.blocks[0].attrs == {"extra": {"id": "anchor"}}
