from typing import Optional

from .models import ErrorKind


class FairMeetError(Exception):
    """Base class for every error raised inside the engine"""

    kind = ErrorKind.INTERNAL


class OracleError(FairMeetError):
    """An external routing or place-search call failed"""

    def __init__(self, message: str, status: Optional[str] = None):
        super().__init__(message)
        self.status = status


class OracleAuthError(OracleError):
    """The provider refused the API key (REQUEST_DENIED)"""

    kind = ErrorKind.AUTH


class OracleNoRouteError(OracleError):
    """No viable route between the requested points (ZERO_RESULTS)"""

    kind = ErrorKind.NO_ROUTE


class OracleTransientError(OracleError):
    """Timeouts, quota and transport failures; the next candidate may still work"""

    kind = ErrorKind.TRANSIENT


class EngineInternalError(FairMeetError):
    kind = ErrorKind.INTERNAL
