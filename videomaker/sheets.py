"""
Google Sheet as a task queue.

The sheet is read over plain HTTP as one of three exports:
  - csv:  /gviz/tq?tqx=out:csv   (or any CSV export URL)
  - gviz: /gviz/tq?tqx=out:json  (JSONP-wrapped visualization response)
  - html: /pubhtml               (published-to-web table)

Parsing is pure (`raw text -> list of row dicts`); the first row is the header.
Headers are normalised (trim, lowercase, spaces -> "_"). Rows are then mapped
onto SheetRow with string fallbacks for any missing column.
"""

import csv
import io
import json
import logging
import re
from typing import Dict, Iterable, List, Optional
from urllib.parse import quote

import requests
from bs4 import BeautifulSoup

from videomaker.errors import SheetError
from videomaker.models import SheetRow
from videomaker.settings import Settings, settings as default_settings

log = logging.getLogger("videomaker.sheets")

FORMATS = ("csv", "gviz", "html", "auto")

FIELD_ALIASES = {
    "title": ("title", "topic", "name"),
    "prompt": ("prompt", "script", "text", "description"),
    "language": ("language", "lang"),
    "voice": ("voice", "voice_id"),
    "status": ("status", "state"),
}

HINT = (
    "Check that the sheet is shared as 'anyone with the link can view' or published to the web, "
    "and that SHEET_ID / SHEET_NAME / SHEET_FORMAT match it."
)

_GVIZ_RE = re.compile(r"setResponse\((.*)\)\s*;?\s*$", re.S)


def normalize_header(h) -> str:
    return re.sub(r"\s+", "_", str(h or "").strip().lower())


def _cell(v) -> str:
    if v is None:
        return ""
    if isinstance(v, float) and v.is_integer():
        return str(int(v))
    return str(v).strip()


def _records(table: List[List[str]]) -> List[Dict[str, str]]:
    """Header row + data rows -> list of dicts. Fully blank rows are dropped."""
    if not table:
        return []
    headers = [normalize_header(h) or f"col_{i + 1}" for i, h in enumerate(table[0])]
    out: List[Dict[str, str]] = []
    for row in table[1:]:
        cells = [_cell(v) for v in row]
        if not any(cells):
            continue
        out.append({h: (cells[i] if i < len(cells) else "") for i, h in enumerate(headers)})
    return out


# ---------- PARSERS ----------
def parse_csv(text: str) -> List[Dict[str, str]]:
    text = (text or "").lstrip("\ufeff")
    table = [row for row in csv.reader(io.StringIO(text)) if row]
    return _records(table)


def parse_gviz(text: str) -> List[Dict[str, str]]:
    raw = (text or "").strip()
    m = _GVIZ_RE.search(raw)
    payload = m.group(1) if m else raw
    try:
        data = json.loads(payload)
    except ValueError as e:
        raise SheetError(f"GViz response is not valid JSON: {e}", hint=HINT)
    if not isinstance(data, dict):
        raise SheetError(f"GViz response is not an object (got {type(data).__name__})", hint=HINT)

    if data.get("status") == "error":
        errs = data.get("errors") or []
        msg = "; ".join(
            str(e.get("detailed_message") or e.get("message") or e) if isinstance(e, dict) else str(e)
            for e in errs
        )
        raise SheetError(f"GViz error: {msg or 'unknown'}", hint=HINT)

    tbl = data.get("table")
    if not isinstance(tbl, dict):
        tbl = {}
    cols = tbl.get("cols") or []
    rows = []
    for r in tbl.get("rows") or []:
        if not isinstance(r, dict):
            continue
        cells = []
        for c in r.get("c") or []:
            if not isinstance(c, dict):
                cells.append("")
            elif isinstance(c.get("v"), str) or c.get("f") is None:
                cells.append(_cell(c.get("v")))
            else:
                cells.append(_cell(c.get("f")))
        rows.append(cells)

    labels = [str(c.get("label") or "").strip() if isinstance(c, dict) else "" for c in cols]
    if any(labels):
        return _records([labels] + rows)
    # headers=0 exports: labels are blank and the header sits in the first row
    return _records(rows)


def parse_html_table(text: str) -> List[Dict[str, str]]:
    soup = BeautifulSoup(text or "", "html.parser")
    table = soup.find("table")
    if table is None:
        return []
    out = []
    for tr in table.find_all("tr"):
        tds = tr.find_all("td")
        if not tds:
            # column-letter header row / row-number gutter only
            continue
        out.append([td.get_text(" ", strip=True) for td in tds])
    return _records(out)


def sniff_format(text: str) -> str:
    head = (text or "").lstrip()[:200].lower()
    if "setresponse(" in head or head.startswith("/*o_o*/") or head.startswith("{"):
        return "gviz"
    if head.startswith("<"):
        return "html"
    return "csv"


def parse_sheet(text: str, fmt: str = "csv") -> List[Dict[str, str]]:
    fmt = (fmt or "csv").lower()
    if fmt == "auto":
        fmt = sniff_format(text)
    if fmt == "csv":
        return parse_csv(text)
    if fmt == "gviz":
        return parse_gviz(text)
    if fmt == "html":
        return parse_html_table(text)
    raise SheetError(f"Unknown sheet format: {fmt}", hint=f"SHEET_FORMAT must be one of {', '.join(FORMATS)}")


# ---------- ROW MAPPING ----------
def _pick(record: Dict[str, str], field: str) -> str:
    for key in FIELD_ALIASES[field]:
        if record.get(key):
            return record[key]
    return ""


def to_sheet_rows(records: Iterable[Dict[str, str]], cfg: Optional[Settings] = None) -> List[SheetRow]:
    cfg = cfg or default_settings
    rows = []
    for i, rec in enumerate(records):
        language = _pick(rec, "language") or cfg.default_language
        rows.append(SheetRow(
            row=i + 2,
            title=_pick(rec, "title"),
            prompt=_pick(rec, "prompt"),
            language=language,
            voice=_pick(rec, "voice") or cfg.voice_for(language),
            status=_pick(rec, "status").lower(),
            raw=dict(rec),
        ))
    return rows


def has_column(records: List[Dict[str, str]], field: str) -> bool:
    if not records:
        return False
    return any(k in records[0] for k in FIELD_ALIASES[field])


def filter_rows(rows: List[SheetRow], status: Optional[str], *, has_status: bool = True) -> List[SheetRow]:
    if not status or not has_status:
        return rows
    wanted = status.strip().lower()
    return [r for r in rows if r.status == wanted]


def next_ready(rows: List[SheetRow], ready_status: str = "ready", *, has_status: bool = True) -> Optional[SheetRow]:
    """
    With a status column: first row whose status equals `ready_status`.
    Without one: first row that has no youtube_url / video_url yet.
    """
    if has_status:
        wanted = ready_status.strip().lower()
        return next((r for r in rows if r.status == wanted), None)
    for r in rows:
        link_cols = [k for k in ("youtube_url", "video_url") if k in r.raw]
        if not link_cols or any(not r.raw.get(k) for k in link_cols):
            return r
    return None


# ---------- FETCH ----------
class SheetSource:
    def __init__(self, cfg: Optional[Settings] = None, session: Optional[requests.Session] = None):
        self.cfg = cfg or default_settings
        self.session = session or requests.Session()

    @property
    def format(self) -> str:
        return (self.cfg.SHEET_FORMAT or "csv").lower()

    def url(self) -> str:
        if self.cfg.SHEET_URL:
            return self.cfg.SHEET_URL
        if not self.cfg.SHEET_ID:
            raise SheetError("SHEET_ID is not configured", hint="Set SHEET_ID (or SHEET_URL) in the environment.")
        base = f"https://docs.google.com/spreadsheets/d/{self.cfg.SHEET_ID}"
        if self.format == "html":
            url = f"{base}/pubhtml?widget=false&headers=false"
            return f"{url}&gid={self.cfg.SHEET_GID}" if self.cfg.SHEET_GID else url
        out = "json" if self.format == "gviz" else "csv"
        url = f"{base}/gviz/tq?tqx=out:{out}"
        if self.cfg.SHEET_NAME:
            return f"{url}&sheet={quote(self.cfg.SHEET_NAME)}"
        if self.cfg.SHEET_GID:
            return f"{url}&gid={self.cfg.SHEET_GID}"
        return url

    def fetch_records(self) -> List[Dict[str, str]]:
        url = self.url()
        try:
            r = self.session.get(url, timeout=30)
        except requests.RequestException as e:
            raise SheetError(f"Sheet fetch failed: {e}", hint=HINT)
        if r.status_code >= 400:
            raise SheetError(f"Sheet fetch failed: HTTP {r.status_code}", hint=HINT)
        fmt = self.format
        ctype = (r.headers.get("Content-Type") or "").lower()
        if fmt == "csv" and "text/html" in ctype:
            # private sheets redirect to a sign-in page
            raise SheetError("Sheet returned HTML instead of CSV (not shared?)", hint=HINT)
        records = parse_sheet(r.text, fmt)
        log.info("sheet fetched: %d rows (%s)", len(records), fmt)
        return records

    def fetch(self) -> List[SheetRow]:
        return to_sheet_rows(self.fetch_records(), self.cfg)
