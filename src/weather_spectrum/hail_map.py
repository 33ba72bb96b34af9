"""
Hail map controller.

Owns the state behind the hail impact map:

- Date range selection (sample, today, yesterday, custom) with fallback to
  the built-in sample events whenever the feed cannot be used
- ZIP code radius filtering against the currently loaded events
- Lazy census enrichment of the selected event, cached per event id
- The detail view for the selected event

Loads and ZIP searches each carry a generation number. A response is applied
only when its generation is still the newest one issued for that operation,
so a slow earlier request can never overwrite the result of a later one.
"""

from __future__ import annotations

import datetime
import logging
import threading
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from .census import EnrichmentResult, SENTINEL_RESULT
from .config import FeedConfig
from .exceptions import ExternalServiceError, NotFoundError, ValidationError
from .geo import is_within_radius
from .hail_reports import HailEvent, HailReportClient, sample_events, size_color, size_label
from .zip_resolver import ZipLocation, ZipResolver, validate_zip

logger = logging.getLogger(__name__)


class DateRange(Enum):
    """Feed date selections."""
    SAMPLE = "sample"
    TODAY = "today"
    YESTERDAY = "yesterday"
    CUSTOM = "custom"


class MessageLevel(Enum):
    INFO = "info"
    WARNING = "warning"


class EnrichmentStatus(Enum):
    """Enrichment lifecycle of a single event."""
    UNRESOLVED = "unresolved"
    RESOLVING = "resolving"
    RESOLVED = "resolved"


class EventNotFoundError(NotFoundError):
    """No loaded event has the requested id."""


@dataclass(frozen=True)
class StatusMessage:
    level: MessageLevel
    text: str

    def to_dict(self) -> Dict[str, str]:
        return {'level': self.level.value, 'text': self.text}


@dataclass(frozen=True)
class ZipFilter:
    zip_code: str
    lat: float
    lon: float
    city: str = ''
    state: str = ''

    @classmethod
    def from_location(cls, location: ZipLocation) -> 'ZipFilter':
        return cls(location.zip_code, location.lat, location.lon, location.city, location.state)


@dataclass
class FilterState:
    """User-selected filters for the map."""
    date_range: DateRange = DateRange.SAMPLE
    custom_date: Optional[datetime.date] = None
    zip_filter: Optional[ZipFilter] = None
    map_center: Tuple[float, float] = (FeedConfig.default_lat, FeedConfig.default_lon)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'date_range': self.date_range.value,
            'custom_date': self.custom_date.isoformat() if self.custom_date else None,
            'zip_filter': {
                'zip': self.zip_filter.zip_code,
                'lat': self.zip_filter.lat,
                'lon': self.zip_filter.lon,
                'city': self.zip_filter.city,
                'state': self.zip_filter.state,
            } if self.zip_filter else None,
            'map_center': list(self.map_center),
        }


@dataclass
class EventDetail:
    """Detail view for a selected event."""
    event: HailEvent
    status: EnrichmentStatus
    zip_code: Optional[str] = None
    estimated_population: Optional[int] = None

    @property
    def loading(self) -> bool:
        return self.status is not EnrichmentStatus.RESOLVED

    def to_dict(self) -> Dict[str, Any]:
        return {
            'event': self.event.to_dict(),
            'status': self.status.value,
            'loading': self.loading,
            'zip_code': self.zip_code,
            'estimated_population': self.estimated_population,
            'size_label': size_label(self.event.size),
            'size_color': size_color(self.event.size),
        }


@dataclass
class LoadResult:
    applied: bool
    used_sample: bool = False
    events_loaded: int = 0
    message: Optional[StatusMessage] = None


@dataclass
class ZipSearchResult:
    applied: bool
    location: ZipLocation
    matches: int = 0
    notice: Optional[StatusMessage] = None


@dataclass
class HailMapSnapshot:
    """Point-in-time copy of the controller state for rendering."""
    filters: FilterState
    events: List[HailEvent]
    filtered_events: List[HailEvent]
    loading: bool = False
    message: Optional[StatusMessage] = None
    notice: Optional[StatusMessage] = None
    selected: Optional[EventDetail] = None
    radius_miles: float = 50.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'filters': self.filters.to_dict(),
            'events_loaded': len(self.events),
            'events': [event.to_dict() for event in self.filtered_events],
            'loading': self.loading,
            'message': self.message.to_dict() if self.message else None,
            'notice': self.notice.to_dict() if self.notice else None,
            'selected': self.selected.to_dict() if self.selected else None,
            'radius_miles': self.radius_miles,
        }


class _EnrichmentEntry:
    def __init__(self):
        self.status = EnrichmentStatus.RESOLVING
        self.result: Optional[EnrichmentResult] = None
        self.done = threading.Event()


class EnrichmentCache:
    """Enrichment results keyed by event id for one feed load."""

    def __init__(self):
        self._entries: Dict[int, _EnrichmentEntry] = {}
        self._lock = threading.Lock()

    def status(self, event_id: int) -> EnrichmentStatus:
        with self._lock:
            entry = self._entries.get(event_id)
            return entry.status if entry else EnrichmentStatus.UNRESOLVED

    def get(self, event_id: int) -> Optional[EnrichmentResult]:
        with self._lock:
            entry = self._entries.get(event_id)
            return entry.result if entry else None

    def claim(self, event_id: int) -> Tuple[_EnrichmentEntry, bool]:
        """Return the entry for event_id and whether the caller must resolve it."""
        with self._lock:
            entry = self._entries.get(event_id)
            if entry is not None:
                return entry, False
            entry = _EnrichmentEntry()
            self._entries[event_id] = entry
            return entry, True

    def complete(self, entry: _EnrichmentEntry, result: EnrichmentResult):
        with self._lock:
            entry.result = result
            entry.status = EnrichmentStatus.RESOLVED
        entry.done.set()


def filter_by_radius(events: List[HailEvent], lat: float, lon: float, radius_miles: float) -> List[HailEvent]:
    """Events within radius_miles of (lat, lon), in their original order."""
    return [event for event in events if is_within_radius(lat, lon, event.lat, event.lon, radius_miles)]


def parse_custom_date(value: Any) -> Optional[datetime.date]:
    """Parse a YYYY-MM-DD value into a calendar date.

    The components are taken as-is; no timezone is involved, so the same
    string always maps to the same feed day.
    """
    if value in (None, ''):
        return None
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    try:
        year, month, day = (int(part) for part in str(value).strip().split('-'))
        return datetime.date(year, month, day)
    except ValueError:
        raise ValidationError(f"Invalid date {value!r}, expected YYYY-MM-DD")


class HailMapController:
    """State machine behind the hail impact map."""

    def __init__(self, report_client: HailReportClient, zip_resolver: ZipResolver, enricher,
                 config: Optional[FeedConfig] = None,
                 today: Callable[[], datetime.date] = datetime.date.today):
        self.report_client = report_client
        self.zip_resolver = zip_resolver
        self.enricher = enricher
        self.config = config or FeedConfig()
        self.today = today
        self.earliest_date = datetime.date.fromisoformat(self.config.earliest_date)

        self._lock = threading.Lock()
        self._load_generation = 0
        self._zip_generation = 0

        self._state = FilterState(map_center=self.default_center)
        self._events: List[HailEvent] = []
        self._filtered: List[HailEvent] = []
        self._cache = EnrichmentCache()
        self._loading = False
        self._message: Optional[StatusMessage] = None
        self._notice: Optional[StatusMessage] = None
        self._selected: Optional[EventDetail] = None

        self._load()

    @property
    def default_center(self) -> Tuple[float, float]:
        return (self.config.default_lat, self.config.default_lon)

    # --- Date range ---

    def set_date_range(self, date_range, custom_date: Any = None) -> LoadResult:
        """Switch the date selection and load the matching reports."""
        try:
            date_range = DateRange(date_range)
        except ValueError:
            raise ValidationError(f"Unknown date range {date_range!r}")

        parsed_date = parse_custom_date(custom_date) if date_range is DateRange.CUSTOM else None

        with self._lock:
            self._state.date_range = date_range
            self._state.custom_date = parsed_date

        return self._load()

    def reload(self) -> LoadResult:
        """Load the reports for the current selection again."""
        return self._load()

    def _load(self) -> LoadResult:
        with self._lock:
            self._load_generation += 1
            generation = self._load_generation
            date_range = self._state.date_range
            custom_date = self._state.custom_date
            self._loading = True

        if date_range is DateRange.SAMPLE:
            return self._apply_sample(generation, None)

        try:
            report_date = self._report_date(date_range, custom_date)
        except ValidationError as e:
            return self._apply_sample(generation, StatusMessage(MessageLevel.WARNING, e.message))

        try:
            events = self.report_client.fetch(report_date)
        except ExternalServiceError as e:
            logger.warning(f"Hail feed unavailable for {report_date}: {e.message}")
            return self._apply_sample(
                generation, StatusMessage(MessageLevel.WARNING, f"{e.message} - Showing sample data instead")
            )
        except Exception as e:
            logger.exception(f"Unexpected error loading hail reports for {report_date}")
            return self._apply_sample(
                generation, StatusMessage(MessageLevel.WARNING, f"{e} - Showing sample data instead")
            )

        return self._apply_events(generation, events)

    def _report_date(self, date_range: DateRange, custom_date: Optional[datetime.date]) -> datetime.date:
        today = self.today()
        if date_range is DateRange.TODAY:
            return today
        if date_range is DateRange.YESTERDAY:
            return today - datetime.timedelta(days=1)

        if custom_date is None:
            raise ValidationError('Please select a date')
        if not (self.earliest_date <= custom_date <= today):
            raise ValidationError(
                f"Please select a date between {self.earliest_date.isoformat()} and {today.isoformat()}"
            )
        return custom_date

    def _apply_events(self, generation: int, events: List[HailEvent]) -> LoadResult:
        with self._lock:
            if generation != self._load_generation:
                logger.info(f"Dropping stale hail feed response (generation {generation})")
                return LoadResult(applied=False, events_loaded=len(events))

            self._set_events(events)
            zip_filter = self._state.zip_filter
            if zip_filter:
                self._filtered = filter_by_radius(events, zip_filter.lat, zip_filter.lon, self.config.radius_miles)
            self._message = None
            self._loading = False

        return LoadResult(applied=True, events_loaded=len(events))

    def _apply_sample(self, generation: int, message: Optional[StatusMessage]) -> LoadResult:
        with self._lock:
            if generation != self._load_generation:
                logger.info(f"Dropping stale sample fallback (generation {generation})")
                return LoadResult(applied=False, used_sample=True)

            if message is None and self._state.date_range is not DateRange.SAMPLE:
                message = StatusMessage(MessageLevel.INFO, 'Showing sample data for demonstration')

            events = sample_events()
            self._set_events(events)
            self._zip_generation += 1
            self._state.zip_filter = None
            self._state.map_center = self.default_center
            self._message = message
            self._loading = False

        return LoadResult(applied=True, used_sample=True, events_loaded=len(events), message=message)

    def _set_events(self, events: List[HailEvent]):
        # Caller holds the lock
        self._events = list(events)
        self._filtered = list(events)
        self._cache = EnrichmentCache()
        self._selected = None
        self._notice = None

    # --- ZIP filter ---

    def search_zip(self, zip_code: str) -> ZipSearchResult:
        """Restrict the loaded events to those near a ZIP code.

        Raises:
            ZipValidationError: not a 5-digit ZIP; state unchanged.
            ZipLookupError: the ZIP could not be resolved; state unchanged.
        """
        zip_code = validate_zip(zip_code)

        with self._lock:
            self._zip_generation += 1
            generation = self._zip_generation

        location = self.zip_resolver.resolve(zip_code)

        with self._lock:
            if generation != self._zip_generation:
                logger.info(f"Dropping stale ZIP search for {zip_code} (generation {generation})")
                return ZipSearchResult(applied=False, location=location)

            zip_filter = ZipFilter.from_location(location)
            self._state.zip_filter = zip_filter
            self._state.map_center = (location.lat, location.lon)
            self._filtered = filter_by_radius(self._events, location.lat, location.lon, self.config.radius_miles)
            matches = len(self._filtered)

            if matches == 0:
                self._notice = StatusMessage(
                    MessageLevel.INFO,
                    f"No hail events found within {self.config.radius_miles:g} miles of ZIP {zip_code} "
                    f"for this date. Try a different date during spring/summer hail season!"
                )
            else:
                self._notice = None
            notice = self._notice

        logger.info(f"ZIP filter {zip_code}: {matches} events within {self.config.radius_miles:g} miles")
        return ZipSearchResult(applied=True, location=location, matches=matches, notice=notice)

    def clear_zip_filter(self):
        """Remove the ZIP filter and show every loaded event again."""
        with self._lock:
            self._zip_generation += 1
            self._state.zip_filter = None
            self._state.map_center = self.default_center
            self._filtered = list(self._events)
            self._notice = None

    # --- Selection ---

    def select_event(self, event_id: int,
                     listener: Optional[Callable[[EventDetail], None]] = None) -> EventDetail:
        """Open the detail view for an event, enriching it on first selection.

        The listener, when given, first receives the loading detail and then
        the resolved one. A cache hit delivers the resolved detail only.
        """
        with self._lock:
            event = next((e for e in self._events if e.id == event_id), None)
            if event is None:
                raise EventNotFoundError(f"No hail event with id {event_id}")
            cache = self._cache

        entry, owner = cache.claim(event_id)

        if entry.status is EnrichmentStatus.RESOLVED:
            logger.debug(f"Enrichment cache hit for event {event_id}")
            detail = self._resolved_detail(event, entry.result)
            self._publish(cache, detail, listener, select=True)
            return detail

        self._publish(cache, EventDetail(event, EnrichmentStatus.RESOLVING), listener, select=True)

        if owner:
            result = SENTINEL_RESULT
            try:
                result = self.enricher.lookup(event.lat, event.lon)
            except Exception:
                logger.exception(f"Enrichment failed for event {event_id}")
            finally:
                # Waiters block on this entry; it must complete even when the lookup is aborted
                cache.complete(entry, result)
        else:
            entry.done.wait()

        detail = self._resolved_detail(event, entry.result)
        self._publish(cache, detail, listener, select=False)
        return detail

    @staticmethod
    def _resolved_detail(event: HailEvent, result: EnrichmentResult) -> EventDetail:
        return EventDetail(event, EnrichmentStatus.RESOLVED, result.zip_code, result.population)

    def _publish(self, cache: EnrichmentCache, detail: EventDetail,
                 listener: Optional[Callable[[EventDetail], None]], select: bool):
        with self._lock:
            # A reload swapped the cache; the old selection is gone
            if cache is self._cache:
                current = self._selected
                if select or (current is not None and current.event.id == detail.event.id):
                    self._selected = detail
        if listener:
            listener(detail)

    def enrichment_status(self, event_id: int) -> EnrichmentStatus:
        with self._lock:
            cache = self._cache
        return cache.status(event_id)

    def close_detail(self):
        with self._lock:
            self._selected = None

    # --- Rendering ---

    def snapshot(self) -> HailMapSnapshot:
        with self._lock:
            return HailMapSnapshot(
                filters=replace(self._state),
                events=list(self._events),
                filtered_events=list(self._filtered),
                loading=self._loading,
                message=self._message,
                notice=self._notice,
                selected=self._selected,
                radius_miles=self.config.radius_miles,
            )
