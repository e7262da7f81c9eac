"""Single-sheet spreadsheet export written to a private temporary file."""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Any

from openpyxl import Workbook

logger = logging.getLogger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@dataclass
class ExportFile:
    """A written export awaiting download.

    Attributes:
        path: Temporary file on disk; the caller removes it after sending
        filename: Attachment name offered to the client
        media_type: Content type of the file
    """

    path: Path
    filename: str
    media_type: str = XLSX_MEDIA_TYPE


def _cell(value: Any) -> Any:
    """Coerce a value into something a worksheet cell accepts."""
    if value is None or isinstance(value, (str, int, float, bool, date, datetime)):
        return value
    return str(value)


class SpreadsheetExporter:
    """Writes rows (header first) to ``.xlsx`` files inside ``export_dir``.

    Each export gets a unique ``mkstemp`` name, so concurrent exports never
    collide. A write that fails removes its partial file and re-raises.
    """

    def __init__(self, export_dir: Path):
        self.export_dir = Path(export_dir)

    def write(self, rows: list[list[Any]], filename: str) -> ExportFile:
        self.export_dir.mkdir(parents=True, exist_ok=True)
        fd, raw_path = tempfile.mkstemp(prefix="export-", suffix=".xlsx", dir=self.export_dir)
        os.close(fd)
        path = Path(raw_path)

        try:
            workbook = Workbook()
            sheet = workbook.active
            sheet.title = "Sheet1"
            for row in rows:
                sheet.append([_cell(v) for v in row])
            workbook.save(path)
        except Exception:
            path.unlink(missing_ok=True)
            logger.exception("Export to %s failed", path)
            raise

        logger.info("Exported %d rows to %s", max(len(rows) - 1, 0), path)
        return ExportFile(path=path, filename=filename)
