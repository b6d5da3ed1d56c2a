"""Error taxonomy for import and export runs."""


class TransferError(Exception):
    """Base class for failures that end a run with a failed result."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class FormatError(TransferError):
    """The payload does not parse under the declared format."""


class SchemaError(TransferError):
    """The destination table or its columns cannot be resolved."""


class ValidationError(TransferError):
    """One or more records violate a validation rule."""

    def __init__(self, message: str, messages: list[str] | None = None):
        super().__init__(message)
        self.messages = list(messages or [message])


class WriteError(TransferError):
    """A statement failed while writing a batch.

    ``rows_committed`` counts the rows persisted by earlier batches, which
    stay committed when the failing batch is rolled back.
    """

    def __init__(self, message: str, rows_committed: int = 0):
        super().__init__(message)
        self.rows_committed = rows_committed


class InputError(TransferError):
    """The input is missing, unreadable or cannot be decoded."""


class CancelledError(TransferError):
    """The caller cancelled the run between two batches."""

    def __init__(self, message: str = "Import cancelled", rows_committed: int = 0):
        super().__init__(message)
        self.rows_committed = rows_committed
