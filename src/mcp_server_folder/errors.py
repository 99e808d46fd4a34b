"""
Error taxonomy for the folder server.

Every error carries a human-readable message, a machine-readable code and the
HTTP status the boundary answers with when the error reaches it.
"""


class FolderServerError(Exception):
    """Base exception for all folder server errors."""

    status_code = 500

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        status_code: int | None = None,
    ) -> None:
        """
        Initialize exception with message, error code and status.

        Args:
            message: Human-readable error message
            code: Machine-readable error code (SNAKE_CASE)
            status_code: Overrides the class-level HTTP status
        """
        self.message = message
        self.code = code
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)


class AuthenticationFailure(FolderServerError):
    """Raised when a mutating request carries a missing or wrong API key."""

    status_code = 401

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message, code="UNAUTHORIZED")


class UnknownSession(FolderServerError):
    """Raised when a session id was never issued or has expired/closed."""

    status_code = 410

    def __init__(
        self, message: str = "Unknown or expired session. Please reinitialize."
    ) -> None:
        super().__init__(message, code="UNKNOWN_SESSION")


class PathTraversal(FolderServerError):
    """Raised when a resolved path escapes the sandbox root."""

    status_code = 400

    def __init__(self, message: str = "Invalid path (path traversal blocked)") -> None:
        super().__init__(message, code="PATH_TRAVERSAL")


class ValidationFailure(FolderServerError):
    """Raised when tool arguments are missing or malformed."""

    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message, code="VALIDATION_ERROR")


class ResourceTooLarge(FolderServerError):
    """Raised when a payload exceeds its configured byte budget."""

    status_code = 413

    def __init__(self, message: str) -> None:
        super().__init__(message, code="RESOURCE_TOO_LARGE")


class NotFound(FolderServerError):
    """Raised when a path, workbook or sheet does not exist."""

    status_code = 404

    def __init__(self, message: str) -> None:
        super().__init__(message, code="NOT_FOUND")


class WrongType(FolderServerError):
    """Raised when a path exists but is not the expected kind (file vs directory)."""

    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message, code="WRONG_TYPE")


class UnsupportedFormat(FolderServerError):
    """Raised when a tool receives a file with the wrong extension."""

    status_code = 415

    def __init__(self, message: str) -> None:
        super().__init__(message, code="UNSUPPORTED_FORMAT")
