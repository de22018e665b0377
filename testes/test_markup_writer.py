import os
import sys

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import pytest
pytest.importorskip("bs4")

from html2rich.models.config import BlockRule, ConverterConfig, EmbedSchema, MarkRule
from html2rich.models.document import document_from_dict
from html2rich.parsers.converter import convert_html
from html2rich.parsers.markup_writer import render_markup

SAMPLE = """
<h2>Title</h2>
<p class="lead">Hello <b>bold <i>both</i></b> and <a href="https://ex.com" title="t">link</a>.<br>Next</p>
<ul><li>one</li><li>two <em>x</em></li></ul>
<ol start="2"><li>first</li></ol>
<blockquote class="pull-quote other">Quoted</blockquote>
<table class="grid">
  <caption>Cap</caption>
  <thead><tr><th>a</th><th>b</th></tr></thead>
  <tr><td colspan="2">c</td></tr>
  <tr><td rowspan="2">d</td><td>e</td></tr>
  <tr><td>f</td></tr>
  <tr><td>short</td></tr>
</table>
<div data-embed="tweet" data-tweet-id="99">fallback</div>
<p><a href="https://ex.com"><img src="i.png" alt="A &amp; B" width="10"></a></p>
<pre>  keep
   spaces &lt;here&gt;</pre>
<custom-box id="c1">inside</custom-box>
<p><span class="red">colored</span> <span class="hl note">lit</span></p>
<hr>
"""


def sample_config():
    return ConverterConfig(
        block_rules=[
            BlockRule(type="quote(pull)", classes=["pull-quote"]),
            BlockRule(type="embed", tags=["div"], attrs={"data-embed": None}),
        ],
        mark_rules=[
            MarkRule(kind="bold", tags=["b", "strong"]),
            MarkRule(kind="italic", tags=["em", "i"]),
            MarkRule(kind="link", tags=["a"], attrs={"href": "url", "title": "str"}, required_attrs=["href"]),
            MarkRule(kind="color", classes=["red"], multi_valued=True),
            MarkRule(kind="highlight", classes=["hl"]),
        ],
        embed_schemas=[
            EmbedSchema(name="tweet", discriminator={"data-embed": "tweet"}, data_fields={"tweet-id": "int"})
        ],
    )


def test_reconverting_rendered_markup_is_idempotent():
    config = sample_config()
    first = convert_html(SAMPLE, config)
    assert first.ok
    markup = render_markup(first.document, config)
    second = convert_html(markup, config)
    assert second.ok
    assert second.document.to_dict() == first.document.to_dict()
    assert second.quarantine == []


def test_rendering_uses_rule_and_tag_mappings():
    config = sample_config()
    doc = convert_html(SAMPLE, config).document
    markup = render_markup(doc, config)
    assert "<h2>Title</h2>" in markup
    assert '<blockquote class="pull-quote other">' in markup
    assert '<td colspan="2">' in markup
    assert "<custom-box" in markup
    assert "<br>" in markup


def test_render_escapes_text():
    doc = convert_html("<p>a &lt;b&gt; &amp; c</p>").document
    assert render_markup(doc) == "<p>a &lt;b&gt; &amp; c</p>"


def test_document_dict_round_trip():
    doc = convert_html(SAMPLE, sample_config()).document
    data = doc.to_dict()
    assert document_from_dict(data).to_dict() == data


def test_canonical_serialization_shape():
    doc = convert_html('<p><i>x</i><b>y</b></p><table><tr><td colspan="2">z</td></tr></table>').document
    data = doc.to_dict()
    para, table = data["blocks"]
    assert para == {
        "type": "paragraph",
        "attrs": {},
        "children": [
            {"text": "x", "marks": [{"kind": "italic", "attrs": {}}]},
            {"text": "y", "marks": [{"kind": "bold", "attrs": {}}]},
        ],
    }
    cell = table["children"][0]["children"][0]
    assert cell["type"] == "table_cell"
    assert cell["attrs"] == {"colspan": 2, "rowspan": 1, "header": False}
