# creative_worker/errors.py


class CreativeWorkerError(Exception):
    """Base class for every error raised by the worker."""


class ConfigurationError(CreativeWorkerError):
    pass


class ObjectNotFound(CreativeWorkerError):
    """
    The object is missing or its body is empty. Raised while the store is
    still catching up with a fresh upload, so retrieval treats it as
    transient.
    """


class RetrievalError(CreativeWorkerError):
    def __init__(self, locator, attempts: int, cause: BaseException | None = None):
        super().__init__(
            f"Could not retrieve {locator} after {attempts} attempt(s): {cause}"
        )
        self.locator = locator
        self.attempts = attempts
        self.cause = cause


class ProbeError(CreativeWorkerError):
    pass


class PersistenceError(CreativeWorkerError):
    pass


class RecordSchemaError(CreativeWorkerError):
    """A stored analysis document does not match the current schema."""
