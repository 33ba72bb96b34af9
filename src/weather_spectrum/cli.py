"""
Command line entry point.

  weather-spectrum web --port 5000
  weather-spectrum relay --port 8787
  weather-spectrum hail --date 2024-07-04 --zip 76102
"""

import argparse
import datetime
import logging
import sys

from .config import get_config
from .exceptions import WeatherSpectrumError
from .geo import haversine_miles
from .hail_map import filter_by_radius, parse_custom_date
from .hail_reports import HailReportClient, size_label
from .zip_resolver import ZipResolver

logger = logging.getLogger(__name__)


def _run_web(args) -> int:
    from .web import create_app

    app = create_app()
    app.run(host=args.host, port=args.port, debug=app.debug)
    return 0


def _run_relay(args) -> int:
    from .relay import create_relay_app

    app = create_relay_app()
    app.run(host=args.host, port=args.port)
    return 0


def _run_hail(args) -> int:
    config = get_config()
    report_date = parse_custom_date(args.date) or datetime.date.today()
    events = HailReportClient(config.feed, timeout=config.http_timeout).fetch(report_date)

    if args.zip:
        location = ZipResolver(config.geo, timeout=config.http_timeout).resolve(args.zip)
        events = filter_by_radius(events, location.lat, location.lon, config.feed.radius_miles)
        print(f"{len(events)} hail reports within {config.feed.radius_miles:g} miles of "
              f"{location.city}, {location.state} on {report_date.isoformat()}")
        for event in events:
            distance = haversine_miles(location.lat, location.lon, event.lat, event.lon)
            print(f"  {event.time:>6}  {event.size:.2f}\" {size_label(event.size):<14} "
                  f"{event.location}, {event.state} ({distance:.1f} mi)")
        return 0

    print(f"{len(events)} hail reports on {report_date.isoformat()}")
    for event in events:
        print(f"  {event.time:>6}  {event.size:.2f}\" {size_label(event.size):<14} "
              f"{event.location}, {event.county} County, {event.state}")
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description='The Weather Spectrum')
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable verbose logging')
    subparsers = parser.add_subparsers(dest='command', required=True)

    web = subparsers.add_parser('web', help='Run the public site')
    web.add_argument('--host', default='127.0.0.1')
    web.add_argument('--port', type=int, default=5000)
    web.set_defaults(handler=_run_web)

    relay = subparsers.add_parser('relay', help='Run the notification relay')
    relay.add_argument('--host', default='127.0.0.1')
    relay.add_argument('--port', type=int, default=8787)
    relay.set_defaults(handler=_run_relay)

    hail = subparsers.add_parser('hail', help='Print the SPC hail reports for a day')
    hail.add_argument('--date', help='Report date (YYYY-MM-DD), default today')
    hail.add_argument('--zip', help='Only reports within the configured radius of this ZIP')
    hail.set_defaults(handler=_run_hail)

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )

    try:
        return args.handler(args)
    except WeatherSpectrumError as e:
        logger.error(e.message)
        return 1
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        return 1


if __name__ == '__main__':
    sys.exit(main())
