"""Error taxonomy for EDI decoding and import."""

from typing import Any, Dict, Optional


class EdiError(Exception):
    """Error that maps to a stable error payload."""

    code = "EDI_ERROR"

    def __init__(
        self,
        message: str,
        *,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class TruncatedRecord(EdiError):
    """Line ended before a field could be extracted."""

    code = "TRUNCATED_RECORD"


class MalformedNumber(EdiError):
    code = "MALFORMED_NUMBER"


class MalformedDate(EdiError):
    code = "MALFORMED_DATE"


class InvalidRowMarker(EdiError):
    code = "INVALID_ROW_MARKER"


class InvalidOwnership(EdiError):
    code = "INVALID_OWNERSHIP"


class InvalidCategory(EdiError):
    code = "INVALID_CATEGORY"


class InvalidOperation(EdiError):
    code = "INVALID_OPERATION"


class InvalidLanguage(EdiError):
    code = "INVALID_LANGUAGE"


class LanguageMismatch(EdiError):
    """Entry belongs to another language than the one being decoded."""

    code = "LANGUAGE_MISMATCH"


class EmptyRequiredField(EdiError):
    code = "EMPTY_REQUIRED_FIELD"


class SchemaSelfCheckFailed(EdiError):
    """Field widths of a record layout do not add up to its line length."""

    code = "SCHEMA_SELF_CHECK_FAILED"


class UnknownSupplier(EdiError):
    code = "UNKNOWN_SUPPLIER"


class StorageWriteFailed(EdiError):
    """Persisting decoded records failed; nothing from the batch was committed."""

    code = "STORAGE_WRITE_FAILED"
