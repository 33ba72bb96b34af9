"""
SPC hail report feed: parsing, sample data and size classification.

The Storm Prediction Center publishes one CSV per day of filtered hail
reports. Each body line is positional:

    time, size (hundredths of an inch), location, county, state, lat, lon, comments

Malformed rows are tolerated: short rows are skipped and unparseable numbers
fall back to fixed defaults so a single bad line never sinks a whole day.
"""

from __future__ import annotations

import datetime
import logging
import math
import re
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional

import requests

from .config import FeedConfig
from .exceptions import ExternalServiceError

logger = logging.getLogger(__name__)

# Parsing defaults
DEFAULT_SIZE_HUNDREDTHS = 75
DEFAULT_LAT = 32.7555
DEFAULT_LON = -97.3308
DEFAULT_PLACE = 'Unknown'
DEFAULT_STATE = 'TX'
MIN_FIELDS = 6

_LEADING_NUMBER = re.compile(r'^\s*([-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?)')


class FeedUnavailableError(ExternalServiceError):
    """The feed could not be fetched for the requested date."""


class EmptyFeedError(ExternalServiceError):
    """The feed parsed to zero events."""


@dataclass
class HailEvent:
    """A single hail report."""
    id: int
    time: str
    size: float
    location: str
    county: str
    state: str
    lat: float
    lon: float
    comments: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _parse_number(raw: str) -> Optional[float]:
    """Parse the leading number of a field; None when there is none."""
    match = _LEADING_NUMBER.match(raw or '')
    if not match:
        return None
    return float(match.group(1))


def _number_or_default(raw: str, default: float) -> float:
    # Zero is treated as missing, the feed never reports a 0" stone or a 0,0 location
    value = _parse_number(raw)
    return value if value and math.isfinite(value) else default


def parse_hail_csv(csv_text: str) -> List[HailEvent]:
    """Parse an SPC filtered-hail CSV into events, in feed order.

    Raises:
        EmptyFeedError: if no line produced an event.
    """
    lines = (csv_text or '').strip().split('\n')
    events: List[HailEvent] = []

    for line_number, raw_line in enumerate(lines[1:], start=2):
        line = raw_line.strip()
        if not line:
            continue

        parts = line.split(',')
        if len(parts) < MIN_FIELDS:
            logger.debug(f"Skipping short feed line {line_number}: {line!r}")
            continue

        size_hundredths = _number_or_default(parts[1], DEFAULT_SIZE_HUNDREDTHS)
        events.append(HailEvent(
            id=len(events) + 1,
            time=parts[0].strip() or DEFAULT_PLACE,
            size=size_hundredths / 100,
            location=parts[2].strip() or DEFAULT_PLACE,
            county=parts[3].strip() or DEFAULT_PLACE,
            state=parts[4].strip() or DEFAULT_STATE,
            lat=_number_or_default(parts[5], DEFAULT_LAT),
            lon=_number_or_default(parts[6] if len(parts) > 6 else '', DEFAULT_LON),
            comments=','.join(parts[7:]).strip(),
        ))

    if not events:
        raise EmptyFeedError('No hail reports for this date')

    return events


def format_report_date(date: datetime.date) -> str:
    """Format a calendar date as the feed's YYMMDD key."""
    return f"{date.year % 100:02d}{date.month:02d}{date.day:02d}"


def feed_url(date: datetime.date, base_url: str = FeedConfig.base_url) -> str:
    return f"{base_url.rstrip('/')}/{format_report_date(date)}_rpts_filtered_hail.csv"


class HailReportClient:
    """Fetches and parses the daily hail report feed."""

    def __init__(self, config: Optional[FeedConfig] = None, session: Optional[requests.Session] = None,
                 timeout: float = 15.0):
        self.config = config or FeedConfig()
        self.session = session or requests.Session()
        self.timeout = timeout

    def fetch(self, date: datetime.date) -> List[HailEvent]:
        """Fetch the reports for one day.

        Raises:
            FeedUnavailableError: network failure or non-2xx response.
            EmptyFeedError: the feed contained no usable rows.
        """
        url = feed_url(date, self.config.base_url)
        logger.info(f"Fetching hail reports from {url}")

        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise FeedUnavailableError(f"Could not reach the hail report feed for {date.isoformat()}: {e}")

        if not response.ok:
            raise FeedUnavailableError(f"No hail reports found for {date.isoformat()}")

        events = parse_hail_csv(response.text)
        logger.info(f"Parsed {len(events)} hail reports for {date.isoformat()}")
        return events


def sample_events() -> List[HailEvent]:
    """Built-in demonstration events around Dallas-Fort Worth."""
    return [
        HailEvent(1, '14:30 CST', 1.75, 'Fort Worth', 'Tarrant', 'TX', 32.7555, -97.3308,
                  'Golf ball sized hail reported by trained spotter. Minor vehicle damage.'),
        HailEvent(2, '15:45 CST', 1.0, 'Arlington', 'Tarrant', 'TX', 32.7357, -97.1081,
                  'Quarter sized hail observed near AT&T Stadium.'),
        HailEvent(3, '16:20 CST', 2.5, 'Dallas', 'Dallas', 'TX', 32.7767, -96.7970,
                  'Baseball to softball sized hail. Multiple reports of vehicle and roof damage.'),
        HailEvent(4, '14:15 CST', 0.75, 'Grapevine', 'Tarrant', 'TX', 32.9342, -97.0781,
                  'Pea sized hail near DFW Airport.'),
        HailEvent(5, '17:00 CST', 1.5, 'Plano', 'Collin', 'TX', 33.0198, -96.6989,
                  'Ping pong ball sized hail. Tree damage reported.'),
    ]


# Size classification, largest first
SIZE_LABELS = [
    (2.75, 'Softball'),
    (2.0, 'Baseball'),
    (1.75, 'Golf Ball'),
    (1.5, 'Ping Pong Ball'),
    (1.25, 'Half Dollar'),
    (1.0, 'Quarter'),
    (0.88, 'Nickel/Walnut'),
    (0.75, 'Penny'),
]

SIZE_COLORS = [
    (2.0, '#ef4444'),   # red
    (1.75, '#f97316'),  # orange
    (1.0, '#eab308'),   # yellow
]
SMALL_HAIL_COLOR = '#22c55e'


def size_label(size: float) -> str:
    """Common-object name for a hail diameter in inches."""
    for threshold, label in SIZE_LABELS:
        if size >= threshold:
            return label
    return 'Pea'


def size_color(size: float) -> str:
    """Marker color for a hail diameter in inches."""
    for threshold, color in SIZE_COLORS:
        if size >= threshold:
            return color
    return SMALL_HAIL_COLOR


SIZE_LEGEND = [
    {'color': SMALL_HAIL_COLOR, 'label': 'Pea/Penny (<1")'},
    {'color': '#eab308', 'label': 'Quarter (1-1.75")'},
    {'color': '#f97316', 'label': 'Golf Ball (1.75-2")'},
    {'color': '#ef4444', 'label': 'Baseball/Softball (2"+)'},
]
