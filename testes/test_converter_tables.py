import os
import sys

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import pytest
pytest.importorskip("bs4")

from html2rich.models.config import ConverterConfig
from html2rich.parsers.converter import convert_html


def tables_of(doc):
    return [b for b in doc.blocks if b.type == "table"]


def grid_width(row):
    return sum(c.colspan for c in row.cells)


def test_table_simple_with_header_row():
    html = """
    <table>
      <tr><th>H1</th><th>H2</th></tr>
      <tr><td>A</td><td>B</td></tr>
    </table>
    """
    result = convert_html(html)
    (table,) = tables_of(result.document)
    assert len(table.rows) == 2
    assert all(c.header for c in table.rows[0].cells)
    assert not any(c.header for c in table.rows[1].cells)
    assert table.rows[1].cells[1].blocks[0].text == "B"
    assert result.events_of("irregular_table_grid") == []


def test_short_row_is_padded_with_empty_paragraph():
    html = "<table><tr><td>1</td><td>2</td><td>3</td></tr><tr><td>4</td><td>5</td></tr></table>"
    result = convert_html(html)
    (table,) = tables_of(result.document)
    assert [len(r.cells) for r in table.rows] == [3, 3]
    pad = table.rows[1].cells[2]
    assert [b.type for b in pad.blocks] == ["paragraph"]
    assert pad.blocks[0].children == ()
    events = result.events_of("irregular_table_grid")
    assert len(events) == 1 and events[0].detail["padded_rows"] == [1]


def test_colspan_counts_toward_logical_width():
    html = '<table><tr><td colspan="2">wide</td></tr><tr><td>a</td><td>b</td></tr></table>'
    result = convert_html(html)
    (table,) = tables_of(result.document)
    assert [grid_width(r) for r in table.rows] == [2, 2]
    assert table.rows[0].cells[0].colspan == 2
    assert result.events_of("irregular_table_grid") == []


def test_rowspan_occupies_following_rows():
    html = (
        "<table>"
        '<tr><td rowspan="2">tall</td><td>a</td></tr>'
        "<tr><td>b</td></tr>"
        "</table>"
    )
    result = convert_html(html)
    (table,) = tables_of(result.document)
    assert table.rows[0].cells[0].rowspan == 2
    assert len(table.rows[1].cells) == 1
    assert result.events_of("irregular_table_grid") == []


def test_rowspan_past_last_row_is_clamped():
    html = '<table><tr><td rowspan="5">x</td></tr><tr><td>y</td></tr></table>'
    result = convert_html(html)
    (table,) = tables_of(result.document)
    assert table.rows[0].cells[0].rowspan == 2
    assert result.events_of("irregular_table_grid")[0].detail["clamped_to"] == 2


def test_invalid_span_falls_back_to_one():
    result = convert_html('<table><tr><td colspan="wide">x</td></tr></table>')
    (table,) = tables_of(result.document)
    assert table.rows[0].cells[0].colspan == 1
    assert result.events_of("attribute_coercion_failed")[0].detail["attribute"] == "colspan"


def test_sections_and_caption():
    html = """
    <table class="data">
      <caption>Totals</caption>
      <thead><tr><th>k</th></tr></thead>
      <tbody><tr><td>v</td></tr></tbody>
      <tfoot><tr><td>f</td></tr></tfoot>
    </table>
    """
    (table,) = tables_of(convert_html(html).document)
    assert table.attrs == {"sourceClass": "data", "caption": "Totals"}
    assert [r.attrs.get("section", "body") for r in table.rows] == ["head", "body", "foot"]


def test_plain_caption_records_nothing():
    result = convert_html("<table><caption>Totals</caption><tr><td>v</td></tr></table>")
    assert result.events_of("caption_flattened") == []


def test_formatted_caption_content_is_reported():
    html = '<table><caption><a href="https://cap.example">c</a></caption><tr><td>v</td></tr></table>'
    result = convert_html(html)
    (table,) = tables_of(result.document)
    assert table.attrs["caption"] == "c"
    (event,) = result.events_of("caption_flattened")
    (paragraph,) = event.detail["content"]
    mark = paragraph["children"][0]["marks"][0]
    assert mark == {"kind": "link", "attrs": {"href": "https://cap.example"}}


@pytest.mark.parametrize("name", ["colspan", "rowspan"])
def test_span_with_thousands_of_digits_is_clamped(name):
    html = f'<table><tr><td {name}="{"9" * 5000}">x</td></tr></table>'
    result = convert_html(html)
    assert result.ok
    (cell,) = tables_of(result.document)[0].rows[0].cells
    assert cell.colspan <= 1000 and cell.rowspan == 1
    assert result.events_of("attribute_coercion_failed")[0].detail["attribute"] == name


def test_cell_content_goes_through_block_conversion():
    html = "<table><tr><td><p>one</p><ul><li><b>two</b></li></ul></td><td></td></tr></table>"
    (table,) = tables_of(convert_html(html).document)
    first, second = table.rows[0].cells
    assert [b.type for b in first.blocks] == ["paragraph", "bulleted_list"]
    run = first.blocks[1].blocks[0].blocks[0].runs[0]
    assert run.text == "two" and [m.kind for m in run.marks] == ["bold"]
    assert [b.type for b in second.blocks] == ["paragraph"]


def test_stray_table_content_is_moved_before_table():
    html = "<table>loose<tr><td>x</td></tr><p>para</p></table>"
    result = convert_html(html)
    types = [b.type for b in result.document.blocks]
    assert types == ["paragraph", "paragraph", "table"]
    assert [b.text for b in result.document.blocks[:2]] == ["loose", "para"]
    assert len(result.events_of("malformed_nesting")) == 2


def test_cells_without_row_get_implicit_row():
    result = convert_html("<table><td>a</td><td>b</td></table>")
    (table,) = tables_of(result.document)
    assert len(table.rows) == 1 and len(table.rows[0].cells) == 2
    assert result.events_of("malformed_nesting")[0].detail["wrapped_in"] == "table_row"


def test_nested_table_inside_cell():
    html = "<table><tr><td><table><tr><td>in</td></tr></table></td></tr></table>"
    (outer,) = tables_of(convert_html(html).document)
    inner = outer.rows[0].cells[0].blocks[0]
    assert inner.type == "table"
    assert inner.rows[0].cells[0].blocks[0].text == "in"


def test_table_cell_limit_fails_document():
    cells = "".join(f"<td>{i}</td>" for i in range(5))
    result = convert_html(f"<table><tr>{cells}</tr></table>", ConverterConfig(max_table_cells=4))
    assert not result.ok
    assert result.document is None
    assert result.error.code == "structural_limit_exceeded"


def test_empty_table_is_dropped():
    assert convert_html("<table></table>").document.blocks == ()
