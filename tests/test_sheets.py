import pytest

from videomaker import sheets
from videomaker.errors import SheetError
from videomaker.settings import Settings

CSV = (
    "Title,Prompt,Language,Voice,Status,YouTube URL\r\n"
    'Intro,"A calm sunrise, over the sea",,,Ready,\r\n'
    'Quotes,"She said ""hello""\nthen left",fr,,done,https://youtu.be/x\r\n'
    ",,,,,\r\n"
)

GVIZ = (
    "/*O_o*/\n"
    'google.visualization.Query.setResponse({"version":"0.6","status":"ok","table":{'
    '"cols":[{"id":"A","label":"Title","type":"string"},{"id":"B","label":"Count","type":"number"}],'
    '"rows":[{"c":[{"v":"Hello"},{"v":3.0,"f":"3"}]},{"c":[{"v":"World"},null]}]}});'
)

HTML = """
<html><body><div id="sheets-viewport">
<table class="waffle">
  <thead><tr><th></th><th>A</th><th>B</th></tr></thead>
  <tbody>
    <tr><th>1</th><td>Title</td><td>Status</td></tr>
    <tr><th>2</th><td>Clip <b>one</b></td><td>Ready</td></tr>
    <tr><th>3</th><td></td><td></td></tr>
  </tbody>
</table></div></body></html>
"""


def cfg(**kw):
    base = {"DEFAULT_LANGS": "en,fr", "DEFAULT_VOICES_JSON": '{"fr": {"voice": "nova"}, "en": {"voice": "alloy"}}'}
    base.update(kw)
    return Settings(**base)


def test_normalize_header():
    assert sheets.normalize_header("  YouTube   URL ") == "youtube_url"
    assert sheets.normalize_header(None) == ""


def test_parse_csv_handles_quotes_and_blank_rows():
    records = sheets.parse_csv("\ufeff" + CSV)
    assert len(records) == 2
    assert records[0]["prompt"] == "A calm sunrise, over the sea"
    assert records[1]["prompt"] == 'She said "hello"\nthen left'
    assert records[1]["youtube_url"] == "https://youtu.be/x"


def test_parse_csv_header_only_is_empty():
    assert sheets.parse_csv("Title,Prompt,Status\n") == []
    assert sheets.parse_csv("") == []


def test_parse_csv_short_rows_are_padded():
    records = sheets.parse_csv("a,b,c\n1\n")
    assert records == [{"a": "1", "b": "", "c": ""}]


def test_parse_gviz():
    assert sheets.parse_gviz(GVIZ) == [
        {"title": "Hello", "count": "3"},
        {"title": "World", "count": ""},
    ]


def test_parse_gviz_without_labels_uses_first_row():
    text = (
        'google.visualization.Query.setResponse({"status":"ok","table":{'
        '"cols":[{"id":"A","label":""},{"id":"B","label":""}],'
        '"rows":[{"c":[{"v":"Title"},{"v":"Status"}]},{"c":[{"v":"X"},{"v":"ready"}]}]}});'
    )
    assert sheets.parse_gviz(text) == [{"title": "X", "status": "ready"}]


def test_parse_gviz_error_status():
    text = 'google.visualization.Query.setResponse({"status":"error","errors":[{"message":"ACCESS_DENIED"}]});'
    with pytest.raises(SheetError) as ei:
        sheets.parse_gviz(text)
    assert "ACCESS_DENIED" in ei.value.detail
    assert ei.value.hint


def test_parse_gviz_garbage():
    with pytest.raises(SheetError):
        sheets.parse_gviz("<html>sign in</html>")


@pytest.mark.parametrize("text", [
    "google.visualization.Query.setResponse([1,2]);",
    '"oops"',
    "42",
    "null",
])
def test_parse_gviz_non_object_payload(text):
    with pytest.raises(SheetError) as ei:
        sheets.parse_gviz(text)
    assert "not an object" in ei.value.detail
    assert ei.value.hint


def test_parse_gviz_error_entries_need_not_be_objects():
    text = 'google.visualization.Query.setResponse({"status":"error","errors":["quota exceeded"]});'
    with pytest.raises(SheetError) as ei:
        sheets.parse_gviz(text)
    assert "quota exceeded" in ei.value.detail


def test_parse_gviz_skips_malformed_rows_and_cells():
    text = (
        'google.visualization.Query.setResponse({"status":"ok","table":{'
        '"cols":[{"label":"Title"},"B",{"label":"Status"}],'
        '"rows":[5,null,{"c":["x",{"v":"ready"}]},{"c":[{"v":"Intro"},{"v":"done"}]}]}});'
    )
    assert sheets.parse_gviz(text) == [
        {"title": "", "col_2": "ready", "status": ""},
        {"title": "Intro", "col_2": "done", "status": ""},
    ]


def test_parse_gviz_table_not_an_object_is_empty():
    assert sheets.parse_gviz('google.visualization.Query.setResponse({"status":"ok","table":[1]});') == []


def test_parse_html_table_skips_gutter():
    assert sheets.parse_html_table(HTML) == [{"title": "Clip one", "status": "Ready"}]
    assert sheets.parse_html_table("<p>no table</p>") == []


def test_parse_sheet_auto_sniffs():
    assert sheets.parse_sheet(GVIZ, "auto")[0]["title"] == "Hello"
    assert sheets.parse_sheet(HTML, "auto")[0]["title"] == "Clip one"
    assert len(sheets.parse_sheet(CSV, "auto")) == 2
    with pytest.raises(SheetError):
        sheets.parse_sheet(CSV, "xlsx")


def test_to_sheet_rows_fallbacks():
    rows = sheets.to_sheet_rows(sheets.parse_csv(CSV), cfg())
    intro, quotes = rows
    assert intro.row == 2
    assert intro.language == "en"  # first DEFAULT_LANGS entry
    assert intro.voice == "alloy"
    assert intro.status == "ready"
    assert quotes.language == "fr"
    assert quotes.voice == "nova"
    assert quotes.raw["youtube_url"] == "https://youtu.be/x"


def test_to_sheet_rows_aliases_and_missing_columns():
    rows = sheets.to_sheet_rows([{"topic": "T", "script": "S"}], cfg(DEFAULT_LANGS="", DEFAULT_VOICES_JSON="not json"))
    assert rows[0].title == "T"
    assert rows[0].prompt == "S"
    assert rows[0].language == "en"
    assert rows[0].voice == ""
    assert rows[0].status == ""


def test_filter_rows():
    records = sheets.parse_csv(CSV)
    rows = sheets.to_sheet_rows(records, cfg())
    assert [r.title for r in sheets.filter_rows(rows, "READY")] == ["Intro"]
    assert sheets.filter_rows(rows, None) == rows
    assert sheets.filter_rows(rows, "ready", has_status=False) == rows


def test_next_ready_by_status():
    rows = sheets.to_sheet_rows(sheets.parse_csv(CSV), cfg())
    assert sheets.next_ready(rows, "ready").title == "Intro"
    assert sheets.next_ready(rows, "processing") is None


def test_next_ready_without_status_uses_empty_link():
    records = sheets.parse_csv("title,video_url\nA,http://v/1\nB,\n")
    rows = sheets.to_sheet_rows(records, cfg())
    assert not sheets.has_column(records, "status")
    assert sheets.next_ready(rows, has_status=False).title == "B"

    records = sheets.parse_csv("title\nOnly\n")
    rows = sheets.to_sheet_rows(records, cfg())
    assert sheets.next_ready(rows, has_status=False).title == "Only"


def test_source_url_building():
    assert sheets.SheetSource(cfg(SHEET_ID="abc", SHEET_NAME="Queue 1")).url() == (
        "https://docs.google.com/spreadsheets/d/abc/gviz/tq?tqx=out:csv&sheet=Queue%201"
    )
    assert sheets.SheetSource(cfg(SHEET_ID="abc", SHEET_FORMAT="gviz", SHEET_GID="7")).url().endswith(
        "tqx=out:json&gid=7"
    )
    assert "/pubhtml" in sheets.SheetSource(cfg(SHEET_ID="abc", SHEET_FORMAT="html")).url()
    assert sheets.SheetSource(cfg(SHEET_URL="https://x/y.csv", SHEET_ID="abc")).url() == "https://x/y.csv"
    with pytest.raises(SheetError):
        sheets.SheetSource(cfg(SHEET_ID=None, SHEET_URL=None)).url()
