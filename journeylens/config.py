"""
Configuration module for JourneyLens
Loads environment variables and provides default settings
"""

import os
from typing import Dict, Any
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# API Settings
API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("API_PORT", "5000"))
API_DEBUG = os.getenv("API_DEBUG", "False").lower() == "true"

# ============================================================================
# Scoring windows and weights
# ============================================================================

BASE_HEALTH_SCORE = float(os.getenv("BASE_HEALTH_SCORE", "70"))

# Days counted as "recent" for engagement, sentiment and tag terms
RECENT_WINDOW_DAYS = int(os.getenv("RECENT_WINDOW_DAYS", "30"))

# Short windows used by the risk level and churn probability rules
CHURN_SIGNAL_WINDOW_DAYS = int(os.getenv("CHURN_SIGNAL_WINDOW_DAYS", "14"))
NEGATIVE_SENTIMENT_WINDOW_DAYS = int(os.getenv("NEGATIVE_SENTIMENT_WINDOW_DAYS", "14"))

# ============================================================================
# Engagement gaps
# ============================================================================

GAP_THRESHOLD_DAYS = int(os.getenv("GAP_THRESHOLD_DAYS", "7"))

# Gaps longer than this cost health points
GAP_PENALTY_MIN_DAYS = int(os.getenv("GAP_PENALTY_MIN_DAYS", "30"))

# Gaps longer than this force at least a "high" risk level
GAP_HIGH_RISK_MIN_DAYS = int(os.getenv("GAP_HIGH_RISK_MIN_DAYS", "60"))

# Severity tiers (lower bound in days, inclusive)
GAP_SEVERITY_THRESHOLDS = {
    "critical": 90,
    "high": 60,
    "medium": 30,
}

# ============================================================================
# Timeline layout
# ============================================================================

# Markers closer than this (screen pixels) are merged into a cluster.
# Both values are fixed; they are not read from the environment.
CLUSTER_THRESHOLD_PX = 500.0
MIN_CLUSTER_SIZE = 3

# Zoom behaviour
ZOOM_SCALE_MIN = float(os.getenv("ZOOM_SCALE_MIN", "0.5"))
ZOOM_SCALE_MAX = float(os.getenv("ZOOM_SCALE_MAX", "20"))
ZOOM_PAN_PADDING_PX = float(os.getenv("ZOOM_PAN_PADDING_PX", "50"))
ZOOM_IN_FACTOR = 1.3
ZOOM_OUT_FACTOR = 0.7

# Viewport
DEFAULT_VIEWPORT_WIDTH = float(os.getenv("DEFAULT_VIEWPORT_WIDTH", "1000"))
DEFAULT_VIEWPORT_HEIGHT = float(os.getenv("DEFAULT_VIEWPORT_HEIGHT", "400"))
VIEWPORT_MARGINS = {"top": 60, "right": 50, "bottom": 60, "left": 50}
DEFAULT_TICK_COUNT = int(os.getenv("DEFAULT_TICK_COUNT", "10"))

# Markers further than this outside the viewport are not laid out
CULL_MARGIN_PX = float(os.getenv("CULL_MARGIN_PX", "50"))

# Marker encoding
MARKER_BASE_SIZE = 8.0
MARKER_WEIGHT_DIVISOR = 15.0
EMPHASIS_SCORE_THRESHOLD = 60
CLUSTER_RADIUS_PX = 20.0

# Journey progress line
SEGMENT_LARGE_GAP_DAYS = 7
SEGMENT_LABEL_GAP_DAYS = 14
SEGMENT_RISK_BANDS = {"high": 60, "medium": 40}

# ============================================================================
# Journey KPIs
# ============================================================================

KPI_HIGH_SCORE_THRESHOLD = 60
KPI_LONG_INTERACTION_SEC = 600
KPI_TREND_SAMPLE_SIZE = 3
KPI_TREND_DEAD_BAND = 3.0

# Render cache
RENDER_CACHE_SIZE = int(os.getenv("RENDER_CACHE_SIZE", "64"))


def get_config_summary() -> Dict[str, Any]:
    """Return a summary of current configuration."""
    return {
        "scoring": {
            "base_health_score": BASE_HEALTH_SCORE,
            "recent_window_days": RECENT_WINDOW_DAYS,
            "churn_signal_window_days": CHURN_SIGNAL_WINDOW_DAYS,
            "negative_sentiment_window_days": NEGATIVE_SENTIMENT_WINDOW_DAYS,
        },
        "gaps": {
            "threshold_days": GAP_THRESHOLD_DAYS,
            "penalty_min_days": GAP_PENALTY_MIN_DAYS,
            "high_risk_min_days": GAP_HIGH_RISK_MIN_DAYS,
            "severity_thresholds": dict(GAP_SEVERITY_THRESHOLDS),
        },
        "timeline": {
            "cluster_threshold_px": CLUSTER_THRESHOLD_PX,
            "min_cluster_size": MIN_CLUSTER_SIZE,
            "zoom_scale_extent": [ZOOM_SCALE_MIN, ZOOM_SCALE_MAX],
            "zoom_pan_padding_px": ZOOM_PAN_PADDING_PX,
            "viewport": [DEFAULT_VIEWPORT_WIDTH, DEFAULT_VIEWPORT_HEIGHT],
            "tick_count": DEFAULT_TICK_COUNT,
            "cull_margin_px": CULL_MARGIN_PX,
        },
        "cache": {
            "render_cache_size": RENDER_CACHE_SIZE,
        },
        "api": {
            "host": API_HOST,
            "port": API_PORT,
            "debug": API_DEBUG,
        },
        "logging": {
            "level": LOG_LEVEL,
        },
    }


def validate_config() -> tuple[bool, str]:
    """Validate configuration. Returns (is_valid, message)."""
    if ZOOM_SCALE_MIN <= 0 or ZOOM_SCALE_MIN > ZOOM_SCALE_MAX:
        return False, f"Invalid zoom extent [{ZOOM_SCALE_MIN}, {ZOOM_SCALE_MAX}]"

    if GAP_THRESHOLD_DAYS < 1:
        return False, "GAP_THRESHOLD_DAYS must be at least 1"

    return True, "Configuration valid"


if __name__ == "__main__":
    # Print config summary for debugging
    import json
    print("JourneyLens Configuration:")
    print(json.dumps(get_config_summary(), indent=2))
    print()
    valid, msg = validate_config()
    print(f"Validation: {msg}")
