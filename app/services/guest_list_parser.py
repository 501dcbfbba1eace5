"""
Guest list parsing for header-delimited spreadsheets.

The expected layout keeps everything in column A: a header cell containing
"guest", then table marker rows ("Table 1") each followed by the names seated
at that table. Rows above the header are treated as preamble and ignored.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional

from app.schemas.guest import Guest, RawRow, UNASSIGNED_TABLE
from app.services.excel_service import decode_rows

HEADER_PATTERN = re.compile(r"guest", re.IGNORECASE)
TABLE_PATTERN = re.compile(r"table", re.IGNORECASE)


class RowKind(str, Enum):
    BLANK = "blank"
    HEADER = "header"
    TABLE_MARKER = "table_marker"
    GUEST = "guest"


@dataclass
class ParserState:
    """Folded state carried across one parsing pass"""
    header_seen: bool = False
    current_table: str = ""


@dataclass(frozen=True)
class RowClassification:
    kind: RowKind
    value: Optional[str] = None


def has_metadata(row: RawRow) -> bool:
    """True when any cell after the first carries text"""
    return any(cell for cell in row[1:])


def classify_row(row: RawRow, state: ParserState) -> RowClassification:
    """Tag one row. Flips ``state.header_seen`` when the header is found."""
    primary = row[0] if row else ""

    if not primary:
        return RowClassification(RowKind.BLANK)

    if not state.header_seen and HEADER_PATTERN.search(primary):
        state.header_seen = True
        return RowClassification(RowKind.HEADER)

    if not state.header_seen:
        return RowClassification(RowKind.BLANK)

    if TABLE_PATTERN.search(primary) and not has_metadata(row):
        return RowClassification(RowKind.TABLE_MARKER, primary)

    # A bare name in column A is still a guest; only the "table" keyword
    # separates markers from guests.
    return RowClassification(RowKind.GUEST, primary)


class GuestListParser:
    """Turns decoded spreadsheet rows into guest records"""

    def parse(self, rows: Iterable[RawRow]) -> List[Guest]:
        state = ParserState()
        guests: List[Guest] = []

        for row in rows:
            result = classify_row(row, state)
            if result.kind is RowKind.TABLE_MARKER:
                state.current_table = result.value
            elif result.kind is RowKind.GUEST:
                guests.append(Guest(
                    name=result.value,
                    table=state.current_table or UNASSIGNED_TABLE,
                ))

        return guests

    def parse_bytes(self, content: bytes, filename: Optional[str] = None) -> List[Guest]:
        """Decode a spreadsheet buffer and parse it. Raises DecodeError."""
        return self.parse(decode_rows(content, filename))
