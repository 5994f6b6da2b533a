"""
Mapping canonical schema fields to source column headers.

The auto-mapping heuristic is a pure function kept apart from ColumnMapping,
which only stores user choices and answers whether the mapping is complete.
"""
import logging
from typing import Dict, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

from sheetbridge.core.errors import MappingIncompleteError
from sheetbridge.domain.ingestion.schemas import CanonicalField, SchemaField, TargetSchema

logger = logging.getLogger(__name__)

FieldRef = Union[CanonicalField, str]


def suggest_header(field: SchemaField, headers: Sequence[str]) -> Optional[str]:
    """
    Guess the source header for one canonical field (case-insensitive).

    Headers are scanned left to right and the first one that equals the
    field key, equals the field label, or contains the field label wins.
    """
    key = field.key.value.lower()
    label = field.label.lower()
    for header in headers:
        candidate = header.lower()
        if candidate == key or candidate == label or label in candidate:
            return header
    return None


def auto_map(schema: TargetSchema, headers: Sequence[str]) -> Dict[CanonicalField, str]:
    """Propose a header for every field of the schema that has a plausible match."""
    proposal: Dict[CanonicalField, str] = {}
    for field in schema.fields:
        match = suggest_header(field, headers)
        if match is not None:
            proposal[field.key] = match
    logger.debug(
        f"Auto-mapped {len(proposal)}/{len(schema.fields)} {schema.category.value} fields"
    )
    return proposal


def missing_required_fields(
    schema: TargetSchema, assignments: Mapping[CanonicalField, Optional[str]]
) -> List[SchemaField]:
    """Required fields without a non-empty header, in schema order."""
    return [field for field in schema.required_fields if not assignments.get(field.key)]


def is_mapping_ready(schema: TargetSchema, assignments: Mapping[CanonicalField, Optional[str]]) -> bool:
    return not missing_required_fields(schema, assignments)


class ColumnMapping:
    """
    User-editable assignment of canonical fields to source headers.

    Two fields may point at the same header. Fields are always members of
    the schema's own field enum; raw strings are resolved on the way in.
    """

    def __init__(self, schema: TargetSchema, assignments: Optional[Mapping[FieldRef, Optional[str]]] = None):
        self._schema = schema
        self._assignments: Dict[CanonicalField, str] = {}
        for field, header in (assignments or {}).items():
            self.set(field, header)

    @classmethod
    def suggested(cls, schema: TargetSchema, headers: Sequence[str]) -> "ColumnMapping":
        """Seed a mapping from the auto-mapping heuristic."""
        return cls(schema, auto_map(schema, headers))

    @property
    def schema(self) -> TargetSchema:
        return self._schema

    def set(self, field: FieldRef, header: Optional[str]) -> None:
        """
        Point a field at a header; a falsy header clears the field.

        Raises:
            KeyError: If the field is not part of this mapping's schema.
        """
        key = self._schema.field_for(field).key
        if header:
            self._assignments[key] = header
        else:
            self._assignments.pop(key, None)

    def clear(self, field: Optional[FieldRef] = None) -> None:
        """Clear one field, or the whole mapping when no field is given."""
        if field is None:
            self._assignments.clear()
            return
        self.set(field, None)

    def get(self, field: FieldRef) -> Optional[str]:
        return self._assignments.get(self._schema.field_for(field).key)

    def items(self) -> Iterator[Tuple[CanonicalField, str]]:
        """Mapped (field, header) pairs in schema order."""
        for field in self._schema.fields:
            header = self._assignments.get(field.key)
            if header:
                yield field.key, header

    def as_dict(self) -> Dict[str, str]:
        return {field.value: header for field, header in self.items()}

    def missing_required(self) -> List[SchemaField]:
        return missing_required_fields(self._schema, self._assignments)

    def is_ready(self) -> bool:
        return is_mapping_ready(self._schema, self._assignments)

    def ensure_ready(self) -> None:
        """
        Raises:
            MappingIncompleteError: If any required field is unmapped.
        """
        missing = self.missing_required()
        if missing:
            raise MappingIncompleteError([field.label for field in missing])

    def copy(self) -> "ColumnMapping":
        return ColumnMapping(self._schema, dict(self._assignments))

    def __len__(self) -> int:
        return len(self._assignments)

    def __eq__(self, other) -> bool:
        if not isinstance(other, ColumnMapping):
            return NotImplemented
        return self._schema.category is other._schema.category and self._assignments == other._assignments

    def __repr__(self) -> str:
        return f"ColumnMapping({self._schema.category.value}, {self.as_dict()!r})"
