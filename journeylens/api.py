"""
Flask API for JourneyLens
JSON endpoints for customer health, engagement gaps and timeline layout
"""

import logging
import math
from datetime import datetime
from typing import Any, Dict, Optional

from flask import Flask, request, jsonify

from . import __version__, config
from .analysis_engine import (
    analyze_customer,
    derive_last_contact_days,
    get_render_cache,
    render_timeline,
)
from .filters import TimelineFilters
from .gaps import detect_gaps
from .layout import Viewport
from .models import CustomerStage, utc_now
from .parser import EventParseError, EventParser, parse_timestamp
from .scoring import compute_health_summary
from .timescale import ZoomTransform

# Configure logging
logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Initialize Flask app
app = Flask(__name__)
app.config['MAX_CONTENT_LENGTH'] = 16 * 1024 * 1024  # 16MB max payload

parser = EventParser()


class BadRequest(ValueError):
    """Malformed request payload."""


def _get_payload() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise BadRequest("Request body must be a JSON object")
    if not isinstance(data.get('events'), list):
        raise BadRequest("Provide 'events' as a list")
    return data


def _get_now(data: Dict[str, Any]) -> datetime:
    if data.get('now') is None:
        return utc_now()
    return parse_timestamp(data['now'])


def _get_last_contact_days(data: Dict[str, Any]) -> Optional[int]:
    value = data.get('last_contact_days', data.get('lastContactDays'))
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise BadRequest(f"'last_contact_days' must be an integer, got {value!r}")


def _get_transform(data: Dict[str, Any]) -> ZoomTransform:
    raw = data.get('transform') or {}
    try:
        k = float(raw.get('k', 1.0))
        x = float(raw.get('x', 0.0))
    except (TypeError, ValueError, AttributeError):
        raise BadRequest("'transform' must be an object with numeric 'k' and 'x'")
    if not math.isfinite(k) or not math.isfinite(x):
        raise BadRequest("'transform' values must be finite")
    return ZoomTransform(k, x)


def _get_viewport(data: Dict[str, Any]) -> Viewport:
    raw = data.get('viewport') or {}
    try:
        width = float(raw.get('width', config.DEFAULT_VIEWPORT_WIDTH))
        height = float(raw.get('height', config.DEFAULT_VIEWPORT_HEIGHT))
    except (TypeError, ValueError, AttributeError):
        raise BadRequest("'viewport' must be an object with numeric 'width' and 'height'")
    if width <= 0 or height <= 0:
        raise BadRequest("'viewport' dimensions must be positive")
    return Viewport(width=width, height=height)


def _bad_request(e: Exception):
    logger.warning(f"Bad request on {request.path}: {e}")
    return jsonify({"error": str(e)}), 400


def _server_error(e: Exception):
    logger.error(f"API error on {request.path}: {e}", exc_info=True)
    return jsonify({"error": str(e)}), 500


@app.route('/api/health-summary', methods=['POST'])
def api_health_summary():
    """Health score, risk level and churn probability for one customer."""
    try:
        data = _get_payload()
        events = parser.parse_records(data['events'])
        now = _get_now(data)
        stage = CustomerStage.from_value(data.get('stage'))

        if data.get('full'):
            return jsonify(analyze_customer(
                events, _get_last_contact_days(data), stage, now,
                filters=TimelineFilters.from_dict(data.get('filters')),
            ))

        last_contact_days = _get_last_contact_days(data)
        if last_contact_days is None:
            last_contact_days = derive_last_contact_days(events, now)

        gaps = detect_gaps(events, now=now)
        summary = compute_health_summary(events, last_contact_days, gaps, stage, now)
        return jsonify(summary.to_dict())

    except (BadRequest, EventParseError) as e:
        return _bad_request(e)
    except Exception as e:
        return _server_error(e)


@app.route('/api/gaps', methods=['POST'])
def api_gaps():
    """Engagement gaps for one customer."""
    try:
        data = _get_payload()
        events = parser.parse_records(data['events'])
        gaps = detect_gaps(events, now=_get_now(data))
        return jsonify({"gaps": [g.to_dict() for g in gaps]})

    except (BadRequest, EventParseError) as e:
        return _bad_request(e)
    except Exception as e:
        return _server_error(e)


@app.route('/api/timeline', methods=['POST'])
def api_timeline():
    """Screen layout of a customer's timeline for a zoom state and viewport."""
    try:
        data = _get_payload()
        events = parser.parse_records(data['events'])
        layout = render_timeline(
            events,
            transform=_get_transform(data),
            viewport=_get_viewport(data),
            now=_get_now(data),
        )
        return jsonify(layout.to_dict())

    except (BadRequest, EventParseError) as e:
        return _bad_request(e)
    except Exception as e:
        return _server_error(e)


@app.route('/health')
def health():
    """Health check endpoint for Docker and monitoring."""
    valid, msg = config.validate_config()
    status = {
        'status': 'ok' if valid else 'degraded',
        'version': __version__,
        'timestamp': utc_now().isoformat(),
        'config': msg,
        'render_cache': get_render_cache().stats(),
    }
    if not valid:
        return jsonify(status), 503
    return jsonify(status)


if __name__ == '__main__':
    # Validate config
    valid, msg = config.validate_config()
    if not valid:
        logger.warning(f"Config validation: {msg}")

    logger.info(f"Starting server on {config.API_HOST}:{config.API_PORT} (debug={config.API_DEBUG})")
    app.run(debug=config.API_DEBUG, host=config.API_HOST, port=config.API_PORT)
