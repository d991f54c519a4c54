"""
Data loading and persistence for the conjoint pipeline.

Handles:
- **Survey input** — a CSV or Excel export of the conjoint profiles, with
  the spreadsheet headers renamed to the canonical attribute columns.
- **Reports** — pipeline output written to
  ``<output_dir>/reports/<study>_<timestamp>.json`` and ``.csv``.

All writes use the fallback pattern (output dir → temp dir → console).
"""

from __future__ import annotations

import logging
import re
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pandas as pd

from tvconjoint.exceptions import DataError
from tvconjoint.models import StudyConfig

logger = logging.getLogger(__name__)


def _safe_write(path: Path, content: str, *, console: Any = None) -> Path | None:
    """
    Write a report file, trying *path* first and then the system temp dir.

    The temp-dir copy keeps the ``<study>_<timestamp>`` file name.  If both
    locations fail the report is echoed to *console* (when given) and
    ``None`` is returned.
    """
    for target in (path, Path(tempfile.gettempdir()) / "tvconjoint" / path.name):
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content)
        except OSError as exc:
            logger.warning("Could not write %s: %s", target, exc)
            continue
        if target != path:
            logger.warning("Report written to fallback location %s", target)
        return target

    if console is not None:
        console.print("[yellow]Could not write report file; printing it instead:[/yellow]")
        console.print(content)
    return None


def _timestamp() -> str:
    """UTC timestamp used to keep successive report files apart."""
    return datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def _slug(name: str) -> str:
    return re.sub(r"[^A-Za-z0-9]+", "_", name).strip("_").lower() or "study"


# ------------------------------------------------------------------
# Survey input
# ------------------------------------------------------------------

def rename_survey_columns(data: pd.DataFrame, config: StudyConfig) -> pd.DataFrame:
    """Return a copy of *data* with spreadsheet headers mapped to attribute keys."""
    mapping = {
        raw: key.value for raw, key in config.column_map.items() if raw in data.columns
    }
    return data.rename(columns=mapping)


def load_survey(path: str | Path, config: StudyConfig) -> pd.DataFrame:
    """
    Read a survey export (``.csv``, ``.xlsx`` or ``.xls``) into a table.

    Headers listed in ``config.column_map`` are renamed to the canonical
    attribute column names; everything else is left untouched.
    """
    path = Path(path)
    if not path.is_file():
        raise DataError(f"Survey file not found: {path}")

    suffix = path.suffix.lower()
    if suffix == ".csv":
        data = pd.read_csv(path)
    elif suffix in (".xlsx", ".xls"):
        data = pd.read_excel(path)
    else:
        raise DataError(f"Unsupported survey file type: {path.suffix or '(none)'}")

    # Excel exports often carry whitespace around headers
    data.columns = [str(c).strip() for c in data.columns]
    return rename_survey_columns(data, config)


# ------------------------------------------------------------------
# Report output
# ------------------------------------------------------------------

def save_report(
    report: Any,
    output_dir: Path,
    *,
    console: Any = None,
) -> list[Path]:
    """
    Save a ``PipelineReport`` as JSON and CSV under ``<output_dir>/reports/``.

    Returns the paths that were actually written.
    """
    stem = f"{_slug(report.config_name)}_{_timestamp()}"
    written: list[Path] = []
    for suffix, content in (("json", report.to_json()), ("csv", report.to_csv())):
        path = _safe_write(
            output_dir / "reports" / f"{stem}.{suffix}", content, console=console,
        )
        if path is not None:
            written.append(path)
    return written
