"""Domain errors raised by the fiscal pipeline services."""


class FiscalPipelineError(Exception):
    """Base class for fiscal pipeline errors."""


class DocumentNotFound(FiscalPipelineError):
    pass


class InvalidTransition(FiscalPipelineError, ValueError):
    """Illegal status change out of a non-terminal state."""

    def __init__(self, document_id, current, target):
        self.document_id = document_id
        self.current = current
        self.target = target
        super().__init__(f"Document {document_id}: illegal transition {current} -> {target}")


class DocumentNotCancellable(FiscalPipelineError):
    pass


class DocumentLeaseUnavailable(FiscalPipelineError):
    """Another worker holds the document lease."""


class InvalidDocumentPayload(FiscalPipelineError, ValueError):
    pass


class DocumentLeaseLost(DocumentLeaseUnavailable):
    """The lease or the attempt's counter value was taken over mid-attempt."""
