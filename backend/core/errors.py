"""Error taxonomy shared by the inventory store, scan flow and account lifecycle.

Each error carries the HTTP status the API reports it with; the mapping to a
response lives in ``main.py``.
"""

from fastapi import status


class BinQRError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__


class Unauthenticated(BinQRError):
    """No session is present."""
    status_code = status.HTTP_401_UNAUTHORIZED


class ValidationError(BinQRError):
    """A required field is blank or malformed."""
    status_code = 422


class NotFound(BinQRError):
    """The id does not exist or is not owned by the caller."""
    status_code = status.HTTP_404_NOT_FOUND


class Conflict(BinQRError):
    """The write is blocked by existing rows."""
    status_code = status.HTTP_409_CONFLICT


class NotRecognized(BinQRError):
    """A scanned payload is not a BinQR identity."""
    status_code = status.HTTP_400_BAD_REQUEST


class LookupFailed(BinQRError):
    """Transient datastore failure while resolving a lookup."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
