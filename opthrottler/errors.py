from __future__ import annotations


def _with_context(message: str, context: tuple[tuple[str, str | None], ...]) -> str:
    parts = [f"{name}={value!r}" for name, value in context if value is not None]
    if not parts:
        return message
    return f"{message} ({', '.join(parts)})"


class OpThrottlerError(Exception):
    """Base exception for opthrottler errors."""


class ConversionError(OpThrottlerError):
    """
    An oplog entry could not be turned into an Operation.

    Carries enough context (op type, namespace, offending field) to diagnose
    the entry without the raw bytes.
    """

    def __init__(
        self,
        message: str,
        *,
        op_type: str | None = None,
        namespace: str | None = None,
        field: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.op_type = op_type
        self.namespace = namespace
        self.field = field

    def __str__(self) -> str:
        return _with_context(
            self.message,
            (("op", self.op_type), ("ns", self.namespace), ("field", self.field)),
        )


class MalformedEntryError(ConversionError):
    """Missing required field, wrong type or unsupported format version."""


class UnsupportedOperationError(ConversionError):
    """Entry content outside what can be replayed idempotently."""


class UnknownOperationError(ConversionError):
    """Operation tag other than insert, update or remove."""


class InvalidIdentifierError(ConversionError):
    """Document _id of a type that has no canonical string form."""


class StoreError(OpThrottlerError):
    """
    Any failure while applying an operation to the target store.

    When raised for a specific operation it names its type, namespace and
    document id; the message is the store's own.
    """

    def __init__(
        self,
        message: str,
        *,
        op_type: str | None = None,
        namespace: str | None = None,
        doc_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.op_type = op_type
        self.namespace = namespace
        self.doc_id = doc_id

    def __str__(self) -> str:
        return _with_context(
            self.message,
            (("op", self.op_type), ("ns", self.namespace), ("id", self.doc_id)),
        )


class SourceError(OpThrottlerError):
    """Failed to stage the oplog from its source location."""
