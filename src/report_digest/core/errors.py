"""
Error taxonomy for the report digest.

Each exception maps to one user-visible failure kind. Callers at the service
boundary convert them into an OperationStatus; none of them may leave the
authoritative record set partially mutated.
"""


class DigestError(Exception):
    """Base class for all report digest failures."""

    kind = "error"
    retryable = False

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ConfigurationError(DigestError):
    """Raised when the digest configuration is missing or inconsistent."""

    kind = "configuration"


class ExtractionError(DigestError):
    """Raised when the extraction service fails or returns unparseable output."""

    kind = "extraction"
    retryable = True


class PersistenceError(DigestError):
    """Raised when a storage backend read/write fails (network, permission, backend)."""

    kind = "persistence"
    retryable = True

    def __init__(self, message: str, backend: str | None = None):
        self.backend = backend
        super().__init__(message)


class StorageCapacityError(DigestError):
    """
    Raised when a snapshot write would exceed the configured soft size limit.

    Distinct from PersistenceError: the operator is expected to export and
    clear the record set, not to retry.
    """

    kind = "storage_capacity"

    def __init__(self, size_bytes: int, limit_bytes: int):
        self.size_bytes = size_bytes
        self.limit_bytes = limit_bytes
        super().__init__(
            f"Serialized record set is {size_bytes} bytes, over the {limit_bytes} byte limit. "
            "Export and clear the existing reports before adding more."
        )


class AuthorizationError(DigestError):
    """Raised when a destructive operation lacks confirmation or the operator passphrase."""

    kind = "authorization"
