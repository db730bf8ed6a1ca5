"""Error taxonomy for the visit engine."""


class VisitEngineError(Exception):
    """Base class for engine errors."""


class NotFoundError(VisitEngineError):
    """A referenced entity id does not resolve."""

    def __init__(self, entity: str, entity_id: str) -> None:
        super().__init__(f"{entity} not found: {entity_id}")
        self.entity = entity
        self.entity_id = entity_id


class ValidationError(VisitEngineError):
    """Arguments were rejected before any mutation happened."""


class StoreError(VisitEngineError):
    """The underlying store rejected a request."""


class StoreBusyError(StoreError):
    """The underlying store reported a busy or locked condition."""


class RetryExhaustedError(StoreBusyError):
    """The store stayed busy for the whole retry budget."""

    def __init__(self, action: str, attempts: int, cause: Exception) -> None:
        super().__init__(f"{action} failed after {attempts} attempts: {cause}")
        self.action = action
        self.attempts = attempts
        self.cause = cause
