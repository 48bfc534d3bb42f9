"""Fair meeting point resolution for two parties with their own travel modes."""

from .engine import MeetingPointEngine, select_scenario
from .errors import (
    EngineInternalError, FairMeetError, OracleAuthError, OracleError, OracleNoRouteError, OracleTransientError,
)
from .models import (
    ErrorKind, FairnessReport, GeoPoint, MeetingPointResult, Place, PlaceResult, RouteResult, Scenario,
    TravelMode,
)
from .oracle import PlaceSearchOracle, RoutingOracle

__version__ = '0.1.0'
