"""
In-memory representation of a parsed spreadsheet.
"""
import math
import numbers
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any, List, Optional, Sequence, Tuple, Union


class CellKind(str, Enum):
    STRING = "string"
    NUMBER = "number"
    EMPTY = "empty"


@dataclass(frozen=True)
class CellValue:
    """A single spreadsheet cell: a string, a number, or nothing."""
    kind: CellKind
    value: Union[str, int, float, None] = None

    @classmethod
    def from_raw(cls, raw: Any) -> "CellValue":
        """Wrap a value produced by the CSV reader or the Excel engine."""
        if raw is None:
            return EMPTY_CELL
        if isinstance(raw, str):
            return cls(CellKind.STRING, raw) if raw != "" else EMPTY_CELL
        if isinstance(raw, bool):
            return cls(CellKind.STRING, "TRUE" if raw else "FALSE")
        if isinstance(raw, Decimal):
            return cls(CellKind.NUMBER, int(raw) if raw == raw.to_integral() else float(raw))
        if isinstance(raw, numbers.Integral):
            return cls(CellKind.NUMBER, int(raw))
        if isinstance(raw, numbers.Real):
            as_float = float(raw)
            if math.isnan(as_float):
                return EMPTY_CELL
            return cls(CellKind.NUMBER, as_float)
        if isinstance(raw, (datetime, date, time)):
            return cls(CellKind.STRING, raw.isoformat())
        return cls(CellKind.STRING, str(raw))

    @property
    def is_empty(self) -> bool:
        return self.kind is CellKind.EMPTY

    def to_python(self) -> Union[str, int, float, None]:
        return self.value

    def __str__(self) -> str:
        if self.kind is CellKind.EMPTY:
            return ""
        if self.kind is CellKind.NUMBER and isinstance(self.value, float) and self.value.is_integer():
            return str(int(self.value))
        return str(self.value)


EMPTY_CELL = CellValue(CellKind.EMPTY)

Row = Tuple[CellValue, ...]


@dataclass(frozen=True)
class ParsedTable:
    """
    Header row plus data rows of one source.

    Every row has exactly ``len(headers)`` cells; the parser pads short rows
    with empty cells.
    """
    headers: Tuple[str, ...]
    rows: Tuple[Row, ...]

    def __post_init__(self):
        width = len(self.headers)
        for position, row in enumerate(self.rows):
            if len(row) != width:
                raise ValueError(
                    f"Row {position + 1} has {len(row)} cells but the header has {width} columns"
                )

    @property
    def row_count(self) -> int:
        return len(self.rows)

    def index_of(self, header: str) -> Optional[int]:
        """Return the position of the first column with this header, or None."""
        try:
            return self.headers.index(header)
        except ValueError:
            return None

    def sample(self, limit: int = 5) -> List[List[Any]]:
        """Return the first rows as plain Python values, for previews."""
        return [[cell.to_python() for cell in row] for row in self.rows[:limit]]


def make_row(values: Sequence[Any], width: int) -> Row:
    """Build a row of exactly ``width`` cells, padding or truncating as needed."""
    cells = [CellValue.from_raw(value) for value in list(values)[:width]]
    cells.extend([EMPTY_CELL] * (width - len(cells)))
    return tuple(cells)
