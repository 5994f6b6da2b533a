"""
One ingestion attempt, from category selection to delivery.

The session object carries everything the flow needs explicitly. Dropping
or resetting it discards the parsed table and mapping; a dispatch that is
already running keeps going and its result is simply not observed here.
"""
import logging
from enum import Enum
from typing import List, Optional, Union

from sheetbridge.core.errors import SourceError
from sheetbridge.domain.delivery.service import DeliveryResult, deliver
from sheetbridge.domain.ingestion.mapping import ColumnMapping, FieldRef
from sheetbridge.domain.ingestion.normalizer import NormalizedRecord, normalize_table, output_columns
from sheetbridge.domain.ingestion.parser import parse_table
from sheetbridge.domain.ingestion.schemas import DataCategory, SchemaField, TargetSchema, get_target_schema
from sheetbridge.domain.ingestion.sources import SourceFile, fetch_google_sheet, from_upload
from sheetbridge.domain.ingestion.tables import ParsedTable

logger = logging.getLogger(__name__)


class IngestionStep(str, Enum):
    TYPE_SELECTION = "type_selection"
    SOURCE_SELECTION = "source_selection"
    MAPPING = "mapping"
    PROCESSING = "processing"
    SUCCESS = "success"
    ERROR = "error"


class IngestionSession:
    def __init__(self, user_id: str, workspace_id: Optional[str] = None):
        self.user_id = user_id
        self.workspace_id = workspace_id
        self.reset()

    def reset(self) -> None:
        self.category: Optional[DataCategory] = None
        self.source: Optional[SourceFile] = None
        self.table: Optional[ParsedTable] = None
        self.mapping: Optional[ColumnMapping] = None
        self.result: Optional[DeliveryResult] = None
        self.error: Optional[str] = None
        self.step = IngestionStep.TYPE_SELECTION

    @property
    def schema(self) -> Optional[TargetSchema]:
        return get_target_schema(self.category) if self.category else None

    def select_category(self, category: Union[DataCategory, str]) -> None:
        """Choose the data category. Any existing mapping is discarded."""
        self.category = DataCategory(category)
        if self.table is not None:
            self.mapping = ColumnMapping(self.schema)
            self.step = IngestionStep.MAPPING
        else:
            self.mapping = None
            self.step = IngestionStep.SOURCE_SELECTION

    def _fail(self, message: str) -> None:
        self.error = message
        self.step = IngestionStep.ERROR

    def load_source(self, source: SourceFile) -> ParsedTable:
        """
        Parse a source and seed the mapping from the auto-mapping heuristic.

        Raises:
            ValueError: If no category has been selected.
            SourceError: If the source is empty or unreadable; the session
                moves to the error step and needs a new source.
        """
        if self.category is None:
            raise ValueError("Select a data category before choosing a source")

        try:
            table = parse_table(source.content, source.file_format)
        except SourceError as e:
            self._fail(str(e))
            raise

        self.source = source
        self.table = table
        self.mapping = ColumnMapping.suggested(self.schema, table.headers)
        self.error = None
        self.step = IngestionStep.MAPPING
        return table

    def load_file(self, content: bytes, file_name: str, content_type: Optional[str] = None) -> ParsedTable:
        return self.load_source(from_upload(content, file_name, content_type))

    def load_google_sheet(self, sheet_url: str) -> ParsedTable:
        if self.category is None:
            raise ValueError("Select a data category before choosing a source")
        self.step = IngestionStep.PROCESSING
        try:
            source = fetch_google_sheet(sheet_url)
        except SourceError as e:
            self._fail(str(e))
            raise
        return self.load_source(source)

    def _require_mapping(self) -> ColumnMapping:
        if self.mapping is None or self.table is None:
            raise ValueError("Load a source before editing the column mapping")
        return self.mapping

    def set_mapping(self, field: FieldRef, header: Optional[str]) -> None:
        """
        Point a canonical field at one of the source headers, or clear it.

        Raises:
            ValueError: If the header is not one of the parsed headers.
            KeyError: If the field is not part of the selected schema.
        """
        mapping = self._require_mapping()
        if header and header not in self.table.headers:
            raise ValueError(f"'{header}' is not a column of the uploaded file")
        mapping.set(field, header)

    def clear_mapping(self) -> None:
        self._require_mapping().clear()

    def is_ready(self) -> bool:
        return self.mapping is not None and self.mapping.is_ready()

    def missing_fields(self) -> List[SchemaField]:
        if self.mapping is None:
            return list(self.schema.required_fields) if self.schema else []
        return self.mapping.missing_required()

    def normalized_records(self) -> List[NormalizedRecord]:
        return normalize_table(self.table, self._require_mapping())

    def submit(self) -> DeliveryResult:
        """
        Normalize the rows and deliver them.

        Raises:
            MappingIncompleteError: If a required field is unmapped; the
                session stays on the mapping step.
        """
        mapping = self._require_mapping()
        mapping.ensure_ready()

        self.step = IngestionStep.PROCESSING
        records = self.normalized_records()
        result = deliver(
            records,
            user_id=self.user_id,
            data_category=self.category,
            source=self.source,
            workspace_id=self.workspace_id,
            columns=output_columns(self.table.headers, mapping),
        )
        self.result = result
        if result.success:
            self.error = None
            self.step = IngestionStep.SUCCESS
        else:
            self._fail(result.error or "Upload failed")
        return result
