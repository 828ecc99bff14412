"""Base service exceptions.

These exceptions are raised by the service layer. The record-management API
that embeds this package catches them and converts them to HTTP responses
(400 for ValidationError, 404 for NotFoundError, 503 for retriable errors,
500 for the rest).
"""


class ServiceError(Exception):
    """Base service exception."""

    retriable: bool = False


class NotFoundError(ServiceError):
    """Resource not found."""

    pass


class ValidationError(ServiceError):
    """Validation error."""

    pass


class InvalidArgument(ValidationError):
    """Malformed partition key, out-of-range period or negative count.

    Not retried. Surfaced to the caller as a rejected request.
    """

    pass


class SubmissionNotFound(NotFoundError):
    """Submission does not exist."""

    pass


class AllocationFailed(ServiceError):
    """Counter update affected no rows, produced an inconsistent delta,
    or the counter lock could not be obtained in time.

    The enclosing transaction has been rolled back. Retrying the whole
    unit of work in a fresh transaction is safe.
    """

    retriable = True


class ConstraintViolation(ServiceError):
    """A storage-level uniqueness constraint on running numbers fired.

    Indicates a bug or a race the locking did not catch. Fatal for the
    request; never renumbered around.
    """

    def __init__(self, message: str, *, constraint: str | None = None):
        self.constraint = constraint
        super().__init__(message)
