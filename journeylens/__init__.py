"""
JourneyLens - Customer Journey Intelligence

Rule-based customer health scoring, engagement gap detection and a zoomable,
density-aware timeline layout over a customer's interaction history.
"""

__version__ = "1.0.0"
__author__ = "JourneyLens Team"

from . import config
from . import models
from . import parser
from . import scoring
from . import gaps
from . import timescale
from . import clustering
from . import layout
from . import filters
from . import aggregator

__all__ = [
    "config",
    "models",
    "parser",
    "scoring",
    "gaps",
    "timescale",
    "clustering",
    "layout",
    "filters",
    "aggregator",
]
