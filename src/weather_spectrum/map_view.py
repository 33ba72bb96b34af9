"""Presentation model for the hail impact map (markers, circle, list, legend)."""

from typing import Any, Dict, List

from .geo import miles_to_meters
from .hail_map import HailMapSnapshot
from .hail_reports import HailEvent, SIZE_LEGEND, size_color, size_label

FILTERED_ZOOM = 10
DEFAULT_ZOOM = 6
FIT_PADDING = [50, 50]
FIT_MAX_ZOOM = 10

TILE_URL = 'https://{s}.tile.openstreetmap.org/{z}/{x}/{y}.png'
TILE_ATTRIBUTION = '&copy; <a href="https://www.openstreetmap.org/copyright">OpenStreetMap</a>'


def _marker(event: HailEvent) -> Dict[str, Any]:
    label = size_label(event.size)
    return {
        'id': event.id,
        'lat': event.lat,
        'lon': event.lon,
        'color': size_color(event.size),
        'size': event.size,
        'size_label': label,
        'popup': {
            'title': f"{event.location}, {event.state}",
            'time': event.time,
            'size': f'{event.size:.2f}" ({label})',
        },
    }


def _list_row(event: HailEvent) -> Dict[str, Any]:
    return {
        'id': event.id,
        'title': f"{event.location}, {event.state}",
        'time': event.time,
        'size': f'{event.size:.2f}" ({size_label(event.size)})',
        'color': size_color(event.size),
    }


def build_map_view(snapshot: HailMapSnapshot) -> Dict[str, Any]:
    """Render a controller snapshot into everything the map page draws."""
    events: List[HailEvent] = snapshot.filtered_events
    zip_filter = snapshot.filters.zip_filter

    circle = None
    if zip_filter:
        circle = {
            'lat': zip_filter.lat,
            'lon': zip_filter.lon,
            'radius_meters': miles_to_meters(snapshot.radius_miles),
        }

    return {
        'center': list(snapshot.filters.map_center),
        'zoom': FILTERED_ZOOM if zip_filter else DEFAULT_ZOOM,
        'fit_bounds': {
            'points': [[event.lat, event.lon] for event in events],
            'padding': FIT_PADDING,
            'max_zoom': FIT_MAX_ZOOM,
        } if events else None,
        'tiles': {'url': TILE_URL, 'attribution': TILE_ATTRIBUTION},
        'markers': [_marker(event) for event in events],
        'circle': circle,
        'rows': [_list_row(event) for event in events],
        'event_count': len(events),
        'legend': SIZE_LEGEND,
    }
