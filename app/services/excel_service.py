"""
Excel processing service for guest list import/export
"""

import csv
import io
import logging
from typing import List, Optional

import pandas as pd

from app.core.errors import DecodeError
from app.schemas.guest import Guest, RawRow

logger = logging.getLogger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _cell_text(value) -> str:
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return ""
    return str(value).strip()


def decode_rows(content: bytes, filename: Optional[str] = None) -> List[RawRow]:
    """Read the first sheet of a spreadsheet into trimmed string rows.

    Fully blank rows are dropped. CSV is used when the filename says so,
    otherwise the buffer is read as an Excel workbook.
    """
    if not content:
        raise DecodeError("Empty file")

    if filename and filename.lower().endswith(".csv"):
        records = _read_csv_matrix(content, filename)
    else:
        try:
            df = pd.read_excel(io.BytesIO(content), header=None, dtype=object, sheet_name=0)
        except Exception as e:
            logger.error(f"Error parsing spreadsheet {filename or '<buffer>'}: {e}")
            raise DecodeError(f"Failed to parse spreadsheet: {e}") from e
        records = df.itertuples(index=False, name=None)

    rows: List[RawRow] = []
    for record in records:
        cells = [_cell_text(value) for value in record]
        if any(cells):
            rows.append(cells)

    return rows


def _read_csv_matrix(content: bytes, filename: str) -> List[List[str]]:
    # Rows keep their own width; later rows may carry more cells than the first.
    text = content.decode("utf-8-sig", errors="replace")
    try:
        return [list(row) for row in csv.reader(io.StringIO(text))]
    except csv.Error as e:
        logger.error(f"Error parsing CSV {filename}: {e}")
        raise DecodeError(f"Failed to parse CSV: {e}") from e


class ExcelService:
    """Service for generating guest list workbooks"""

    @staticmethod
    def create_template() -> bytes:
        """Create an Excel template in the header / table marker layout"""
        rows = [
            ['Guest'],
            ['Table 1'],
            ['Sample Guest 1'],
            ['Sample Guest 2'],
            ['Table 2'],
            ['Sample Guest 3'],
        ]
        df = pd.DataFrame(rows)

        buffer = io.BytesIO()
        with pd.ExcelWriter(buffer, engine='openpyxl') as writer:
            df.to_excel(writer, index=False, header=False, sheet_name='Guest List')

        return buffer.getvalue()

    @staticmethod
    def export_directory(guests: List[Guest]) -> bytes:
        """Export the current guest directory to Excel"""
        data = [
            {
                'Name': guest.name,
                'Table': guest.table,
                'Downloaded': 'Yes' if guest.downloaded else 'No',
            }
            for guest in guests
        ]

        df = pd.DataFrame(data, columns=['Name', 'Table', 'Downloaded'])

        buffer = io.BytesIO()
        with pd.ExcelWriter(buffer, engine='openpyxl') as writer:
            df.to_excel(writer, index=False, sheet_name='Guest List')

        return buffer.getvalue()
