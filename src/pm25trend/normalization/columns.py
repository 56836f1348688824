"""
Column name normalization.

Turns header text into identifiers and maps source names onto the
canonical names used throughout the pipeline.
"""

import keyword
import re

import pandas as pd

from pm25trend.exceptions import SchemaBindingError
from pm25trend.utils.logging import get_logger

log = get_logger(__name__)

# Canonical column names for the pipeline
STATE_CODE = "state_code"
COUNTY_CODE = "county_code"
SITE_ID = "site_id"
DATE = "date"
VALUE = "value"
PERIOD = "period"
MONTH = "month"

SITE_KEY_COLUMNS: list[str] = [STATE_CODE, COUNTY_CODE, SITE_ID]
REQUIRED_COLUMNS: list[str] = [*SITE_KEY_COLUMNS, DATE, VALUE]

# Maps sanitized source names to canonical names.
# Raw data files use "Sample Value"/"Date"; daily summary files use
# "Site Num"/"Date Local"/"Arithmetic Mean".
COLUMN_MAPPING: dict[str, str] = {
    "state_code": STATE_CODE,
    "county_code": COUNTY_CODE,
    "site_id": SITE_ID,
    "site_num": SITE_ID,
    "date": DATE,
    "date_local": DATE,
    "value": VALUE,
    "sample_value": VALUE,
    "arithmetic_mean": VALUE,
}

_NON_IDENTIFIER = re.compile(r"[^0-9a-zA-Z]+")


def sanitize_name(name: str) -> str:
    """
    Turn a header label into a lower-case Python identifier.

    Example:
        "Qualifier - 1" -> "qualifier_1", "Monitor Protocol (MP) ID" -> "monitor_protocol_mp_id"
    """
    text = _NON_IDENTIFIER.sub("_", name.strip()).strip("_").lower()
    if not text:
        text = "x"
    elif text[0].isdigit():
        text = f"x_{text}"
    if keyword.iskeyword(text):
        text = f"{text}_"
    return text


def sanitize_header(names: list[str]) -> list[str]:
    """
    Sanitize all header labels, suffixing duplicates with ``_1``, ``_2``...

    Args:
        names: Raw header labels in file order.

    Returns:
        Unique identifiers in the same order.
    """
    seen: dict[str, int] = {}
    result: list[str] = []
    for name in names:
        base = sanitize_name(name)
        candidate = base
        while candidate in seen:
            seen[base] += 1
            candidate = f"{base}_{seen[base]}"
        seen.setdefault(candidate, 0)
        result.append(candidate)
    return result


def canonical_names(
    names: list[str],
    mapping: dict[str, str] | None = None,
) -> dict[str, str]:
    """
    Find which sanitized names map to canonical names.

    The first source column claiming a canonical name wins.

    Args:
        names: Sanitized column names.
        mapping: Optional custom mapping (defaults to COLUMN_MAPPING).

    Returns:
        Rename dict from source name to canonical name.
    """
    mapping = mapping or COLUMN_MAPPING
    rename: dict[str, str] = {}
    claimed: set[str] = set()
    for name in names:
        target = mapping.get(name)
        if target is None or target in claimed:
            continue
        rename[name] = target
        claimed.add(target)
    return rename


def normalize_columns(
    df: pd.DataFrame,
    mapping: dict[str, str] | None = None,
) -> pd.DataFrame:
    """
    Normalize column names to canonical form.

    Args:
        df: DataFrame to normalize.
        mapping: Optional custom mapping (defaults to COLUMN_MAPPING).

    Returns:
        DataFrame with normalized column names.
    """
    rename_dict = {
        k: v for k, v in canonical_names(list(df.columns), mapping).items() if k != v
    }

    if rename_dict:
        log.debug("Normalizing columns", renamed=list(rename_dict.keys()))
        df = df.rename(columns=rename_dict)

    return df


def validate_required_columns(
    columns: list[str],
    required: list[str] | None = None,
) -> None:
    """
    Check that required canonical columns are present.

    Args:
        columns: Column names after normalization.
        required: Required names (defaults to REQUIRED_COLUMNS).

    Raises:
        SchemaBindingError: If columns are missing.
    """
    required = required or REQUIRED_COLUMNS
    missing = [col for col in required if col not in columns]

    if missing:
        msg = f"Missing required columns: {missing}"
        raise SchemaBindingError(msg)
