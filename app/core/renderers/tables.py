"""Parse table markup (pipe, tab-separated or HTML) out of free-form content."""

import re

from bs4 import BeautifulSoup

_SEPARATOR_CELL_RE = re.compile(r"^:?-{2,}:?$")
_HTML_RE = re.compile(r"<(?:html|body|table|p|div|h[1-6]|ul|ol|li|br)[\s/>]", re.IGNORECASE)


def looks_like_html(content: str) -> bool:
    return bool(_HTML_RE.search(content or ""))


def split_pipe_row(line: str) -> list[str]:
    stripped = line.strip()
    if stripped.startswith("|"):
        stripped = stripped[1:]
    if stripped.endswith("|"):
        stripped = stripped[:-1]
    return [cell.strip() for cell in stripped.split("|")]


def is_separator_row(cells: list[str]) -> bool:
    non_empty = [c for c in cells if c]
    return bool(non_empty) and all(_SEPARATOR_CELL_RE.match(c.replace(" ", "")) for c in non_empty)


def parse_html_tables(content: str) -> list[list[list[str]]]:
    soup = BeautifulSoup(content, "lxml")
    tables: list[list[list[str]]] = []
    for table in soup.find_all("table"):
        rows = []
        for tr in table.find_all("tr"):
            cells = [cell.get_text(" ", strip=True) for cell in tr.find_all(["th", "td"])]
            if cells:
                rows.append(cells)
        if rows:
            tables.append(rows)
    return tables


def parse_text_tables(content: str) -> list[list[list[str]]]:
    """Pipe tables and runs of tab-separated lines; separator rows are skipped."""
    tables: list[list[list[str]]] = []
    current: list[list[str]] = []
    mode: str | None = None

    def flush() -> None:
        nonlocal current, mode
        if len(current) >= 1:
            tables.append(current)
        current, mode = [], None

    for line in content.splitlines():
        stripped = line.strip()
        if stripped.startswith("|") and stripped.count("|") >= 2:
            if mode not in (None, "pipe"):
                flush()
            mode = "pipe"
            cells = split_pipe_row(stripped)
            if not is_separator_row(cells):
                current.append(cells)
        elif "\t" in line and stripped:
            if mode not in (None, "tab"):
                flush()
            mode = "tab"
            current.append([cell.strip() for cell in line.split("\t")])
        else:
            if current:
                flush()
            mode = None
    if current:
        flush()
    return tables


def parse_tables(content: str) -> list[list[list[str]]]:
    if looks_like_html(content):
        tables = parse_html_tables(content)
        if tables:
            return tables
    return parse_text_tables(content)


def content_to_rows(content: str) -> list[list[str]]:
    """All tables in the content, concatenated; without tables, one row per line."""
    tables = parse_tables(content)
    if tables:
        rows: list[list[str]] = []
        for idx, table in enumerate(tables):
            if idx:
                rows.append([])
            rows.extend(table)
        return rows

    text = BeautifulSoup(content, "lxml").get_text("\n") if looks_like_html(content) else content
    return [[line.strip()] for line in text.splitlines() if line.strip()]
