import asyncio
import logging
import threading
from time import perf_counter
from typing import Optional

from flask import Flask, g, jsonify, request
from flask_cors import CORS

from .config import Settings
from .engine import MeetingPointEngine
from .errors import OracleError
from .maps_service import GoogleMapsService
from .models import GeoPoint, TravelMode
from .places import DEFAULT_CATEGORY

settings = Settings.from_env()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.FileHandler(settings.log_file),
        logging.StreamHandler()
    ]
)
logger = logging.getLogger(__name__)

app = Flask(__name__)
CORS(app)  # Enable CORS for all routes


class EngineLoop:
    """
    Runs engine coroutines on a single background event loop so the caches
    and the request queue are only ever touched from one thread.
    """

    def __init__(self):
        self.loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run, name='fairmeet-engine', daemon=True)
        self._thread.start()

    def _run(self):
        asyncio.set_event_loop(self.loop)
        self.loop.run_forever()

    def run(self, coro, timeout: Optional[float] = None):
        return asyncio.run_coroutine_threadsafe(coro, self.loop).result(timeout)

    def call(self, fn, *args):
        """Run a plain function on the loop thread"""
        async def _call():
            return fn(*args)
        return self.run(_call())

    def stop(self):
        self.loop.call_soon_threadsafe(self.loop.stop)
        self._thread.join()


def build_engine(config: Settings) -> Optional[MeetingPointEngine]:
    logger.info(f"API Key found: {'Yes' if config.has_api_key else 'No'}")
    if not config.has_api_key:
        logger.warning("GOOGLE_MAPS_API_KEY not found or not configured in environment variables")
        return None
    try:
        logger.info("Initializing Google Maps service...")
        maps_service = GoogleMapsService(config.google_maps_api_key, max_workers=config.maps_max_workers)
    except ValueError as e:
        logger.error(f"Error initializing Google Maps service: {e}")
        return None
    logger.info("Google Maps service initialized successfully")
    return MeetingPointEngine(
        maps_service,
        maps_service,
        cache_ttl_seconds=config.cache_ttl_seconds,
        request_delay_seconds=config.request_delay_seconds,
    )


engine = build_engine(settings)
engine_loop = EngineLoop()


# Per-request timing: record start time and log duration on completion
@app.before_request
def _start_timer():
    g._start_time = perf_counter()


@app.after_request
def _log_request_duration(response):
    start = getattr(g, '_start_time', None)
    if start is not None:
        duration_ms = (perf_counter() - start) * 1000.0
        response.headers['X-Process-Time-ms'] = f"{duration_ms:.1f}"
        logger.info(
            "request completed: method=%s path=%s status=%s duration_ms=%.1f remote_addr=%s",
            request.method,
            request.full_path if request.query_string else request.path,
            response.status_code,
            duration_ms,
            request.remote_addr,
        )
    return response


@app.teardown_request
def _teardown_request_log(error=None):
    # If an unhandled exception occurred, ensure we still log duration
    if error is not None:
        start = getattr(g, '_start_time', None)
        duration_ms = (perf_counter() - start) * 1000.0 if start is not None else None
        logger.error(
            "request error: method=%s path=%s duration_ms=%s error=%s",
            request.method,
            request.path,
            f"{duration_ms:.1f}" if duration_ms is not None else 'unknown',
            repr(error),
        )


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValueError('JSON object body is required')
    return data


def _point(data: dict, field: str) -> GeoPoint:
    if field not in data:
        raise ValueError(f'{field} is required')
    try:
        return GeoPoint.from_dict(data[field])
    except ValueError as e:
        raise ValueError(f'{field}: {e}') from None


def _modes(data: dict):
    return (TravelMode.parse(data.get('mode_a', TravelMode.DRIVING)),
            TravelMode.parse(data.get('mode_b', TravelMode.DRIVING)))


def _not_configured():
    logger.error("Google Maps API key not configured - cannot process request")
    return jsonify({'error': 'Google Maps API key not configured'}), 500


@app.route('/', methods=['GET'])
def health_check():
    """Health check endpoint"""
    return jsonify({
        'message': 'Fair meeting point API is running!',
        'endpoints': {
            'meeting_point': '/api/meeting-point',
            'places': '/api/places',
            'place_fairness': '/api/place-fairness',
            'metrics': '/api/metrics',
            'health': '/'
        },
        'maps_configured': engine is not None,
        'status': 'healthy'
    })


@app.route('/api/meeting-point', methods=['POST'])
def meeting_point():
    """
    Resolve the fair meeting point between two locations
    Expected JSON: {
        "location_a": {"lat": 40.7128, "lng": -74.0060},
        "location_b": {"lat": 40.7589, "lng": -73.9851},
        "mode_a": "DRIVING",
        "mode_b": "TRANSIT",
        "include_places": true,      // optional
        "place_type": "restaurant"   // optional
    }
    """
    if engine is None:
        return _not_configured()

    data = _json_body()
    location_a, location_b = _point(data, 'location_a'), _point(data, 'location_b')
    mode_a, mode_b = _modes(data)
    radius = engine.search_radius(mode_a, mode_b)

    _algo_start = perf_counter()
    result = engine_loop.run(engine.resolve_meeting_point(location_a, location_b, mode_a, mode_b))
    _compute_ms = (perf_counter() - _algo_start) * 1000.0
    logger.info("Time to find meeting point = %.1f ms (strategy=%s, fallback=%s)",
                _compute_ms, result.strategy.value if result.strategy else None, result.used_fallback)

    payload = result.to_dict()
    payload['search_radius'] = radius
    if data.get('include_places'):
        try:
            nearby = engine_loop.run(engine.find_places(result.point, data.get('place_type', DEFAULT_CATEGORY),
                                                        radius))
            payload['places'] = [p.to_dict() for p in nearby]
        except OracleError as e:
            logger.warning("Place search around meeting point failed: %s", e)
            payload['places'] = []

    response = jsonify({'success': True, 'data': payload})
    response.headers['X-Compute-Time-ms'] = f"{_compute_ms:.1f}"
    return response


@app.route('/api/places', methods=['POST'])
def places():
    """
    Places around a point
    Expected JSON: {
        "location": {"lat": 40.7128, "lng": -74.0060},
        "place_type": "cafe",   // optional, defaults to restaurant
        "radius": 1000          // optional, or give mode_a/mode_b to use the mode radius
    }
    """
    if engine is None:
        return _not_configured()

    data = _json_body()
    location = _point(data, 'location')
    radius = data.get('radius')
    if radius is None and ('mode_a' in data or 'mode_b' in data):
        radius = engine.search_radius(*_modes(data))
    if radius is not None and (isinstance(radius, bool) or not isinstance(radius, int)):
        raise ValueError('radius must be an integer number of meters')

    try:
        found = engine_loop.run(engine.find_places(location, data.get('place_type', DEFAULT_CATEGORY), radius))
    except OracleError as e:
        logger.warning("Place search failed: %s", e)
        return jsonify({'success': False, 'error': 'Place search failed', 'error_kind': e.kind.value}), 502

    return jsonify({'success': True, 'data': {'places': [p.to_dict() for p in found]}})


@app.route('/api/place-fairness', methods=['POST'])
def place_fairness():
    """
    Travel-time fairness of a chosen place
    Expected JSON: location_a, location_b, mode_a, mode_b as for /api/meeting-point
    plus "place": {"lat": ..., "lng": ...}
    """
    if engine is None:
        return _not_configured()

    data = _json_body()
    location_a, location_b = _point(data, 'location_a'), _point(data, 'location_b')
    place = _point(data, 'place')
    mode_a, mode_b = _modes(data)

    report = engine_loop.run(engine.evaluate_place(location_a, location_b, mode_a, mode_b, place))
    if report is None:
        return jsonify({
            'success': False,
            'error': 'Could not calculate travel times to the selected place'
        }), 404
    return jsonify({'success': True, 'data': report.to_dict()})


@app.route('/api/metrics', methods=['GET'])
def metrics():
    if engine is None:
        return _not_configured()
    return jsonify({'success': True, 'data': engine_loop.call(engine.metrics)})


@app.route('/api/metrics/reset', methods=['POST'])
def reset_metrics():
    if engine is None:
        return _not_configured()
    engine_loop.call(engine.reset_metrics)
    return jsonify({'success': True})


@app.errorhandler(ValueError)
def bad_request(error):
    logger.warning("Rejected request: %s", error)
    return jsonify({'error': str(error)}), 400


@app.errorhandler(404)
def not_found(error):
    return jsonify({'error': 'Endpoint not found'}), 404


@app.errorhandler(405)
def method_not_allowed(error):
    return jsonify({'error': 'Method not allowed'}), 405


@app.errorhandler(500)
def internal_error(error):
    return jsonify({'error': 'Internal server error'}), 500
