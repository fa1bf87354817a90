"""
Bulk channel lists from CSV and Excel files.

Every cell of every row is scanned; a cell counts when it holds a channel URL
in one of the four accepted shapes or a bare `@handle`. Rows that fail to
parse are skipped. Canonicalization happens later in the input normalizer.

    records = load_bulk_file(Path("channels.xlsx"))
    records[0]  # BulkRecord(url='https://www.youtube.com/@x', row=2, source='excel')
"""

from __future__ import annotations

import csv
import io
import logging
import re
from dataclasses import dataclass
from pathlib import Path

import pandas as pd

from .errors import ConfigurationError


logger = logging.getLogger(__name__)

CHANNEL_URL_PATTERNS = [
    re.compile(r'youtube\.com/@[\w.-]+', re.IGNORECASE),
    re.compile(r'youtube\.com/channel/[\w-]+', re.IGNORECASE),
    re.compile(r'youtube\.com/c/[\w.-]+', re.IGNORECASE),
    re.compile(r'youtube\.com/user/[\w.-]+', re.IGNORECASE),
]

CSV_TEMPLATE = """channel_url,channel_name,notes
https://www.youtube.com/@MrBeast,MrBeast,Main channel
https://www.youtube.com/@PewDiePie,PewDiePie,Gaming channel
@Markiplier,Markiplier,Can use @ format
https://www.youtube.com/channel/UC-lHJZR3Gqxm24_Vd_AJ5Yw,Another format,Channel ID format
"""


@dataclass
class BulkRecord:
    url: str
    row: int  # 1-based spreadsheet row, header is row 1
    source: str  # 'csv' or 'excel'
    sheet: str | None = None


def channel_cell(value) -> str | None:
    """The cell's channel reference, or None when it holds none."""
    if not isinstance(value, str):
        return None
    value = value.strip()
    if not value:
        return None
    if any(p.search(value) for p in CHANNEL_URL_PATTERNS):
        return value
    if value.startswith('@') and ' ' not in value and len(value) > 1:
        return value
    return None


def _collect(rows, source: str, sheet: str | None = None) -> list[BulkRecord]:
    records = []
    seen = set()
    for index, row in enumerate(rows):
        for value in row:
            url = channel_cell(value)
            if url and url not in seen:
                seen.add(url)
                records.append(BulkRecord(url=url, row=index + 2, source=source, sheet=sheet))
    return records


def parse_csv(data: str | bytes) -> list[BulkRecord]:
    """Channel references from CSV text with a header row."""
    if isinstance(data, bytes):
        data = data.decode('utf-8-sig', errors='replace')
    reader = csv.reader(io.StringIO(data))
    try:
        next(reader)
    except StopIteration:
        return []
    except csv.Error as e:
        raise ConfigurationError(f"CSV parsing failed: {e}") from e

    rows = []
    while True:
        try:
            row = next(reader)
        except StopIteration:
            break
        except csv.Error as e:
            logger.warning("Skipping malformed CSV row %d: %s", reader.line_num, e)
            rows.append([])
            continue
        rows.append(row)

    records = _collect(rows, 'csv')
    logger.info("Parsed %d CSV rows, found %d channel references", len(rows), len(records))
    return records


def parse_excel(data: bytes, sheet_name: str | None = None) -> list[BulkRecord]:
    """Channel references from an .xlsx workbook (first sheet by default)."""
    try:
        frame = pd.read_excel(
            io.BytesIO(data),
            sheet_name=sheet_name if sheet_name is not None else 0,
            dtype=str,
            keep_default_na=False,
            engine='openpyxl',
        )
    except (ValueError, KeyError, OSError) as e:
        raise ConfigurationError(f"Excel parsing failed: {e}") from e

    rows = [list(row) for row in frame.itertuples(index=False, name=None)]
    records = _collect(rows, 'excel', sheet=sheet_name)
    logger.info("Parsed %d Excel rows, found %d channel references", len(rows), len(records))
    return records


def load_bulk_file(path: Path, sheet_name: str | None = None) -> list[BulkRecord]:
    """Dispatch on file suffix: .csv/.txt as CSV, .xlsx/.xlsm as Excel."""
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Bulk import file not found: {path}")
    suffix = path.suffix.lower()
    if suffix in ('.csv', '.txt'):
        return parse_csv(path.read_bytes())
    if suffix in ('.xlsx', '.xlsm'):
        return parse_excel(path.read_bytes(), sheet_name=sheet_name)
    raise ConfigurationError(f"Unsupported bulk import format: {suffix or path.name}")


def generate_csv_template() -> str:
    return CSV_TEMPLATE
