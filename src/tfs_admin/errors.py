"""
Exception hierarchy for tfs-admin.
"""


class TfsAdminError(Exception):
    """Base class for all tfs-admin errors"""


class DuplicateKeyError(TfsAdminError, ValueError):
    """A source field list repeats a reference name"""

    def __init__(self, reference_name: str):
        self.reference_name = reference_name
        super().__init__(f"Duplicate reference name in source field list: {reference_name}")


class FieldListFormatError(TfsAdminError):
    """A persisted field list could not be read"""


class TfsConnectionError(TfsAdminError):
    """The server could not be reached or the client is not connected"""


class TfsApiError(TfsAdminError):
    """The server answered with a non-success status"""

    def __init__(self, status: int, url: str, message: str = ""):
        self.status = status
        self.url = url
        detail = f": {message}" if message else ""
        super().__init__(f"HTTP {status} from {url}{detail}")


class TfsAuthenticationError(TfsApiError):
    """The server rejected the supplied credentials"""
