"""
Flask app for The Weather Spectrum site.

Serves the page shells and the JSON API behind them: the hail impact map,
current weather, alerts, webcams, push opt-in configuration and the admin
notification panel.

Each browser session gets its own HailMapController, keyed by an id stored in
the signed session cookie.
"""

import datetime
import logging
import math
import threading
import uuid
from collections import OrderedDict
from typing import Any, Callable, Dict, Optional

from flask import Flask, jsonify, render_template_string, request, session
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from ..admin import AdminSessions, NotificationBroadcaster, QUICK_TEMPLATES
from ..app_logging import configure_logging
from ..census import create_enricher
from ..config import SystemConfig, get_config
from ..exceptions import ValidationError, WeatherSpectrumError
from ..hail_map import HailMapController
from ..hail_reports import HailReportClient
from ..map_view import build_map_view
from ..weather import NWSClient
from ..webcams import DEFAULT_RADIUS_MILES, WebcamsUnavailableError, WindyWebcamClient
from ..zip_resolver import ZipResolver
from .templates import ADMIN_TEMPLATE, HAIL_MAP_TEMPLATE, HOME_TEMPLATE

logger = logging.getLogger(__name__)

SITE_NAME = 'The Weather Spectrum'
MAP_SESSION_KEY = 'map_session'
MAX_MAP_SESSIONS = 1000


class ControllerRegistry:
    """One hail map controller per browser session, oldest evicted first."""

    def __init__(self, factory: Callable[[], HailMapController], max_sessions: int = MAX_MAP_SESSIONS):
        self.factory = factory
        self.max_sessions = max_sessions
        self._controllers: 'OrderedDict[str, HailMapController]' = OrderedDict()
        self._lock = threading.Lock()

    def get(self, session_id: str) -> HailMapController:
        with self._lock:
            controller = self._controllers.get(session_id)
            if controller is not None:
                self._controllers.move_to_end(session_id)
                return controller

            controller = self.factory()
            self._controllers[session_id] = controller
            while len(self._controllers) > self.max_sessions:
                evicted, _ = self._controllers.popitem(last=False)
                logger.debug(f"Evicted hail map session {evicted}")
            return controller

    def __len__(self):
        with self._lock:
            return len(self._controllers)


def _coordinate(name: str, low: float, high: float, default: Optional[float] = None) -> float:
    raw = request.args.get(name)
    if raw in (None, ''):
        if default is None:
            raise ValidationError(f"Missing required parameter: {name}")
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValidationError(f"{name} must be a number")
    if not math.isfinite(value) or not (low <= value <= high):
        raise ValidationError(f"{name} must be between {low:g} and {high:g}")
    return value


def _json_object() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def create_app(config: Optional[SystemConfig] = None, testing: bool = False,
               report_client=None, zip_resolver=None, enricher=None, nws_client=None,
               webcam_client=None, broadcaster=None,
               today: Callable[[], datetime.date] = datetime.date.today,
               clock: Optional[Callable[[], float]] = None) -> Flask:
    """Create the site app. Collaborators default to real HTTP clients built from config."""
    config = config or get_config()
    app = Flask(__name__)
    app.testing = testing
    app.debug = config.debug
    app.secret_key = config.secret_key or 'dev-secret-key-change-in-production'
    app.permanent_session_lifetime = datetime.timedelta(minutes=config.admin.session_lifetime_minutes)
    app.config['SYSTEM_CONFIG'] = config

    if config.enable_cors:
        CORS(app)

    configure_logging(app, config)

    timeout = config.http_timeout
    report_client = report_client or HailReportClient(config.feed, timeout=timeout)
    zip_resolver = zip_resolver or ZipResolver(config.geo, timeout=timeout)
    enricher = enricher or create_enricher(config.geo, config.push.relay_url, timeout=timeout)
    nws_client = nws_client or NWSClient(config.geo, timeout=timeout)
    webcam_client = webcam_client or WindyWebcamClient(config.geo, timeout=timeout)
    broadcaster = broadcaster or NotificationBroadcaster(config.push, config.site_url, timeout=timeout)
    admin_sessions = AdminSessions(config.admin, clock) if clock else AdminSessions(config.admin)

    registry = ControllerRegistry(
        lambda: HailMapController(report_client, zip_resolver, enricher, config.feed, today=today)
    )
    app.extensions['hail_map_registry'] = registry

    def controller() -> HailMapController:
        session_id = session.get(MAP_SESSION_KEY)
        if not session_id:
            session_id = uuid.uuid4().hex
            session[MAP_SESSION_KEY] = session_id
        return registry.get(session_id)

    def map_state(ctrl: HailMapController):
        snapshot = ctrl.snapshot()
        data = snapshot.to_dict()
        data['view'] = build_map_view(snapshot)
        return jsonify(data)

    def page_context(**extra):
        context = {
            'site_name': SITE_NAME,
            'site_url': config.site_url,
            'onesignal_app_id': config.push.onesignal_app_id,
        }
        context.update(extra)
        return context

    # --- Pages ---

    @app.route('/')
    def home():
        return render_template_string(HOME_TEMPLATE, **page_context(
            default_lat=config.feed.default_lat, default_lon=config.feed.default_lon,
        ))

    @app.route('/hail-map')
    def hail_map_page():
        return render_template_string(HAIL_MAP_TEMPLATE, **page_context(earliest_date=config.feed.earliest_date))

    @app.route('/admin')
    def admin_page():
        return render_template_string(ADMIN_TEMPLATE, **page_context(
            authenticated=admin_sessions.is_authenticated(), templates=QUICK_TEMPLATES,
        ))

    # --- Hail map API ---

    @app.route('/api/hail-map', methods=['GET'])
    def api_hail_map():
        return map_state(controller())

    @app.route('/api/hail-map/date', methods=['POST'])
    def api_hail_map_date():
        data = _json_object()
        ctrl = controller()
        ctrl.set_date_range(data.get('date_range', 'sample'), data.get('custom_date'))
        return map_state(ctrl)

    @app.route('/api/hail-map/reload', methods=['POST'])
    def api_hail_map_reload():
        ctrl = controller()
        ctrl.reload()
        return map_state(ctrl)

    @app.route('/api/hail-map/zip', methods=['POST'])
    def api_hail_map_zip():
        data = _json_object()
        ctrl = controller()
        ctrl.search_zip(str(data.get('zip', '')))
        return map_state(ctrl)

    @app.route('/api/hail-map/zip', methods=['DELETE'])
    def api_hail_map_zip_clear():
        ctrl = controller()
        ctrl.clear_zip_filter()
        return map_state(ctrl)

    @app.route('/api/hail-map/events/<int:event_id>/select', methods=['POST'])
    def api_hail_map_select(event_id):
        detail = controller().select_event(event_id)
        return jsonify(detail.to_dict())

    @app.route('/api/hail-map/selection', methods=['DELETE'])
    def api_hail_map_close():
        ctrl = controller()
        ctrl.close_detail()
        return map_state(ctrl)

    # --- Weather ---

    @app.route('/api/weather', methods=['GET'])
    def api_weather():
        zip_code = request.args.get('zip')
        if zip_code:
            location = zip_resolver.resolve(zip_code)
            lat, lon = location.lat, location.lon
            name = f"{location.city}, {location.state}"
        else:
            lat = _coordinate('lat', -90, 90, config.feed.default_lat)
            lon = _coordinate('lon', -180, 180, config.feed.default_lon)
            name = request.args.get('name')
        return jsonify(nws_client.current_conditions(lat, lon, name).to_dict())

    @app.route('/api/alerts', methods=['GET'])
    def api_alerts():
        lat = _coordinate('lat', -90, 90)
        lon = _coordinate('lon', -180, 180)
        try:
            alerts = nws_client.active_alerts(lat, lon)
        except WeatherSpectrumError as e:
            logger.warning(f"Alerts unavailable for {lat}, {lon}: {e.message}")
            return jsonify({'alerts': [], 'error': e.message})
        return jsonify({'alerts': [alert.to_dict() for alert in alerts]})

    @app.route('/api/webcams', methods=['GET'])
    def api_webcams():
        lat = _coordinate('lat', -90, 90)
        lon = _coordinate('lon', -180, 180)
        radius = _coordinate('radius', 1, 500, DEFAULT_RADIUS_MILES)
        try:
            webcams = webcam_client.nearby(lat, lon, radius)
        except WebcamsUnavailableError as e:
            return jsonify({'webcams': [], 'radius_miles': radius, 'error': e.message})
        return jsonify({'webcams': [cam.to_dict() for cam in webcams], 'radius_miles': radius})

    @app.route('/api/push/config', methods=['GET'])
    def api_push_config():
        return jsonify({
            'app_id': config.push.onesignal_app_id,
            'enabled': bool(config.push.onesignal_app_id),
        })

    # --- Admin ---

    @app.route('/admin/login', methods=['POST'])
    def admin_login():
        data = _json_object()
        expires_at = admin_sessions.login(data.get('password'))
        return jsonify({'authenticated': True, 'expires_at': expires_at})

    @app.route('/admin/logout', methods=['POST'])
    def admin_logout():
        admin_sessions.logout()
        return jsonify({'authenticated': False})

    @app.route('/admin/templates', methods=['GET'])
    @admin_sessions.require
    def admin_templates():
        return jsonify({'templates': [template.to_dict() for template in QUICK_TEMPLATES]})

    @app.route('/admin/notify', methods=['POST'])
    @admin_sessions.require
    def admin_notify():
        data = _json_object()
        status, body = broadcaster.broadcast(data.get('title'), data.get('message'), data.get('url') or None)
        return jsonify(body), status

    # --- Errors ---

    @app.errorhandler(WeatherSpectrumError)
    def handle_app_error(e):
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(Exception)
    def handle_unexpected_error(e):
        if isinstance(e, HTTPException):
            return e
        logger.exception("Unhandled error")
        return jsonify({'error': 'Internal server error', 'type': 'internal_error'}), 500

    return app
