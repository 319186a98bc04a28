"""Custom exception classes for the MogileFS client."""

from typing import Optional


class MogileFSError(Exception):
    """
    Base exception class for all client errors.
    """
    pass


class ReadOnlyError(MogileFSError):
    """
    Raised when a mutating call is made on a read-only client.
    """

    def __init__(self, message: str = "readonly mogilefs"):
        super().__init__(message)


class EmptyPathError(MogileFSError):
    """
    Raised when the tracker hands back no destination path for a new file.
    """

    def __init__(self, message: str = "Empty path for mogile upload"):
        super().__init__(message)


class UnsupportedPathError(MogileFSError):
    """
    Raised when a destination path is neither an HTTP URL nor a filesystem path.
    """
    pass


class SizeMismatchError(MogileFSError):
    """
    Raised when the bytes written differ from the expected length at close.
    """

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Expected {expected} bytes, wrote {actual}")


class UploadError(MogileFSError):
    """
    Raised when a storage node refuses or drops an upload.
    """
    pass


class RequestTruncatedError(MogileFSError):
    """
    Raised when a tracker reply or replica body ends prematurely.
    """
    pass


class UnreachableBackendError(MogileFSError):
    """
    Raised when no tracker can be connected to.
    """

    def __init__(self, message: str = "couldn't connect to mogilefsd backend"):
        super().__init__(message)


class DomainNotFoundError(MogileFSError):
    """
    Raised when a domain is absent from the cached domain table.
    """

    def __init__(self, domain: str):
        self.domain = domain
        super().__init__(f"Domain not found: {domain}")


class BackendError(MogileFSError):
    """
    Raised when the tracker answers a request with an ERR reply.
    """

    def __init__(self, code: str, message: Optional[str] = None):
        self.code = code
        self.message = message or code
        super().__init__(f"{code}: {self.message}")


class UnknownKeyError(BackendError):
    pass


class NoneMatchError(BackendError):
    pass


class KeyExistsError(BackendError):
    pass


class UnknownDomainError(BackendError):
    pass


class UnknownFidError(BackendError):
    pass


BACKEND_ERRORS = {
    'unknown_key': UnknownKeyError,
    'none_match': NoneMatchError,
    'key_exists': KeyExistsError,
    'domain_not_found': UnknownDomainError,
    'unreg_domain': UnknownDomainError,
    'unknown_fid': UnknownFidError,
}


def backend_error(code: str, message: Optional[str] = None) -> BackendError:
    """
    Build the typed exception for a tracker error code.

    Args:
        code: Error code from the ERR reply (e.g., 'unknown_key')
        message: Decoded human-readable message, if any

    Returns:
        BackendError subclass instance matching the code
    """
    return BACKEND_ERRORS.get(code, BackendError)(code, message)


class InvalidResponseError(MogileFSError):
    """
    Raised when a tracker reply is neither OK nor ERR.
    """
    pass
