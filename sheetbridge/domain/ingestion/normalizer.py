"""
Re-project raw rows into records keyed by canonical field.
"""
import logging
from typing import Any, Dict, List, Sequence, Tuple

from sheetbridge.domain.ingestion.mapping import ColumnMapping
from sheetbridge.domain.ingestion.tables import ParsedTable, Row

logger = logging.getLogger(__name__)

NormalizedRecord = Dict[str, Any]


def resolve_positions(headers: Sequence[str], mapping: ColumnMapping) -> List[Tuple[str, int]]:
    """
    Pair each mapped field key with the first position of its header.

    A header that is not in ``headers`` is skipped with a warning instead of
    failing the batch.
    """
    header_list = list(headers)
    resolved = []
    for field, header in mapping.items():
        try:
            resolved.append((field.value, header_list.index(header)))
        except ValueError:
            logger.warning(f"Mapped header '{header}' for '{field.value}' not found in source; skipping field")
    return resolved


def output_columns(headers: Sequence[str], mapping: ColumnMapping) -> List[str]:
    """Field keys every record of this source carries, in schema order."""
    return [key for key, _ in resolve_positions(headers, mapping)]


def normalize_rows(
    rows: Sequence[Row],
    headers: Sequence[str],
    mapping: ColumnMapping,
) -> List[NormalizedRecord]:
    """
    Build one record per row, in row order.

    Each mapped field takes the cell under its header's first position.
    Unmapped fields are absent from the record.
    """
    resolved = resolve_positions(headers, mapping)

    records: List[NormalizedRecord] = []
    for row in rows:
        record: NormalizedRecord = {}
        for key, position in resolved:
            if position < len(row):
                record[key] = row[position].to_python()
        records.append(record)
    return records


def normalize_table(table: ParsedTable, mapping: ColumnMapping) -> List[NormalizedRecord]:
    return normalize_rows(table.rows, table.headers, mapping)
