"""
IRD Inventory - Spreadsheet Parsing

Turns an uploaded workbook (.xlsx) or CSV into an ordered list of string-keyed
row mappings, and maps source headers onto canonical IRD field names.

Accepted header spellings per field: snake_case (``admin_ip``), camelCase
(``adminIp``) and the legacy inventory headers (``ipAdminIrd``, ``nombreIrd``,
...). Matching ignores case, spaces and dashes.
"""

from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

import pandas as pd
from pydantic.alias_generators import to_camel

from ..core.errors import InvalidArgumentError
from ..core.models import IRD_FIELDS, FormatReport

logger = logging.getLogger(__name__)

EXCEL_SUFFIXES = (".xlsx", ".xlsm")
CSV_SUFFIXES = (".csv",)

# Minimum columns a bulk IRD sheet must carry.
REQUIRED_HEADERS = ("name", "admin_ip", "brand", "model")

LEGACY_HEADERS: Dict[str, List[str]] = {
    "name": ["nombreIrd", "nombre"],
    "admin_ip": ["ipAdminIrd", "ip_admin"],
    "url": ["urlIrd"],
    "brand": ["marcaIrd", "marca"],
    "model": ["modelIrd", "modelo"],
    "version": ["versionIrd"],
    "ua": ["uaIrd"],
    "symbol_rate": ["symbolRateIrd"],
    "fec_receptor": ["fecReceptorIrd"],
    "modulation_receptor": ["modulationReceptorIrd"],
    "roll_off_receptor": ["rellOfReceptor", "rollOffReceptor"],
}


def normalize_column_name(col: Any) -> str:
    """Lowercase, strip, spaces/dashes to underscores."""
    return str(col).lower().strip().replace(" ", "_").replace("-", "_")


def _build_alias_table() -> Dict[str, str]:
    table: Dict[str, str] = {}
    for field in IRD_FIELDS:
        for alias in [field, to_camel(field), *LEGACY_HEADERS.get(field, [])]:
            table[normalize_column_name(alias)] = field
    return table


HEADER_ALIASES = _build_alias_table()


def canonical_header(col: Any) -> Optional[str]:
    """Canonical IRD field for a source header, or None when unknown."""
    return HEADER_ALIASES.get(normalize_column_name(col))


def canonicalize_row(row: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Re-key a source row by canonical field name. Unknown columns are dropped;
    when two headers map to one field the first non-blank value wins.
    """
    mapped: Dict[str, Any] = {}
    for col, value in row.items():
        field = canonical_header(col)
        if field is None:
            continue
        if field not in mapped or (mapped[field] in ("", None) and value not in ("", None)):
            mapped[field] = value
    return mapped


# =============================================================================
# Reading
# =============================================================================


def read_spreadsheet(content: bytes, filename: str) -> pd.DataFrame:
    """
    Read the first sheet of an upload as text.

    Every cell is a string; blank cells are "". Fully blank rows are dropped.
    Raises InvalidArgumentError for unsupported, unreadable or empty input.
    """
    if not content:
        raise InvalidArgumentError("Uploaded file is empty", field="file")

    suffix = Path(filename or "").suffix.lower()
    buffer = io.BytesIO(content)
    try:
        if suffix in CSV_SUFFIXES:
            df = pd.read_csv(buffer, dtype=str)
        elif suffix in EXCEL_SUFFIXES:
            df = pd.read_excel(buffer, sheet_name=0, dtype=str, engine="openpyxl")
        else:
            raise InvalidArgumentError(
                f"Unsupported file type {suffix or '(none)'}; expected .xlsx or .csv",
                field="file",
            )
    except InvalidArgumentError:
        raise
    except Exception as exc:
        logger.warning(f"Could not parse upload {filename!r}: {type(exc).__name__}: {exc}")
        raise InvalidArgumentError(f"Unreadable spreadsheet: {exc}", field="file") from exc

    df.columns = [str(c).strip() for c in df.columns]
    df = df.dropna(how="all").fillna("")

    if df.empty:
        raise InvalidArgumentError("The spreadsheet has no data rows", field="file")

    logger.info(f"Parsed {filename!r}: {len(df)} rows, {len(df.columns)} columns", extra={"count": len(df)})
    return df


def frame_to_rows(df: pd.DataFrame) -> List[Dict[str, Any]]:
    """Ordered row mappings keyed by the original headers."""
    return df.to_dict(orient="records")


# =============================================================================
# Header Validation
# =============================================================================


def missing_headers(headers: Iterable[Any]) -> List[str]:
    """Required fields (camelCase) that no header maps to."""
    present = {canonical_header(h) for h in headers}
    return [to_camel(field) for field in REQUIRED_HEADERS if field not in present]


def format_report(df: pd.DataFrame, preview_rows: int = 5) -> FormatReport:
    headers = [str(c) for c in df.columns]
    missing = missing_headers(headers)
    if missing:
        return FormatReport(
            success=False,
            message=f"Invalid file format: missing {', '.join(missing)}",
            headers=headers,
            missing_headers=missing,
            total_rows=len(df),
        )

    return FormatReport(
        success=True,
        message="Valid format",
        headers=headers,
        preview=frame_to_rows(df.head(preview_rows)),
        total_rows=len(df),
    )
