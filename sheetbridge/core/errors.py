"""
Exception hierarchy for the ingestion pipeline.

Source and validation errors are raised before any durable write and are
reported straight back to the user. Delivery errors happen after the file
is stored and end up in the upload's status field instead.
"""


class IngestionError(Exception):
    """Base exception for the ingestion pipeline."""
    pass


class SourceError(IngestionError):
    """The source could not be read. Terminal for the current attempt."""
    pass


class EmptyFileError(SourceError):
    """Raised when the source contains no rows at all."""

    def __init__(self, message: str = "File is empty"):
        super().__init__(message)


class ParseError(SourceError):
    """Raised when the source bytes are not a readable spreadsheet."""

    def __init__(self, message: str = "Failed to parse file. Please upload a valid Excel or CSV."):
        super().__init__(message)


class InvalidSheetUrlError(SourceError):
    """Raised when a Google Sheets URL has no recognisable sheet id."""
    pass


class SheetNotAccessibleError(SourceError):
    """Raised when the CSV export of a Google Sheet cannot be fetched."""
    pass


class ValidationError(IngestionError):
    """Input rejected before any I/O took place."""
    pass


class FileValidationError(ValidationError):
    """Raised when the source file breaks the size or type constraints."""
    pass


class MappingIncompleteError(ValidationError):
    """Raised when a required canonical field has no source column."""

    def __init__(self, missing_fields):
        self.missing_fields = list(missing_fields)
        labels = ", ".join(self.missing_fields)
        super().__init__(f"Missing required fields: {labels}")


class DeliveryError(IngestionError):
    """Base exception for failures while handing data downstream."""
    pass


class WebhookDeliveryError(DeliveryError):
    """Raised when the webhook returns a non-2xx response or is unreachable."""

    def __init__(self, message: str, status_code=None):
        self.status_code = status_code
        super().__init__(message)
