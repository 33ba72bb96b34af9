"""
Pytest configuration and fixtures for The Weather Spectrum test suite.
"""

import datetime
import random
from unittest.mock import Mock

import pytest
import requests

from weather_spectrum.config import SystemConfig, reset_config
from weather_spectrum.relay import teardown_push


SAMPLE_CSV = """Time,Size,Location,County,State,Lat,Lon,Comments
1530,175,3 N Fort Worth,Tarrant,TX,32.80,-97.33,Golf ball hail. Reported by spotter. (FWD)
1545,100,Arlington,Tarrant,TX,32.73,-97.11,Quarter hail, covering the ground (FWD)
bad,line
1610,250,2 W Norman,Cleveland,OK,35.22,-97.47,Baseball hail (OUN)
"""


def make_response(status_code=200, json_data=None, text=''):
    """Build a stand-in for requests.Response."""
    response = Mock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 400
    response.text = text
    if json_data is None:
        response.json = Mock(side_effect=ValueError('No JSON'))
    else:
        response.json = Mock(return_value=json_data)

    def raise_for_status():
        if not response.ok:
            raise requests.HTTPError(f"{status_code} Error")
    response.raise_for_status = Mock(side_effect=raise_for_status)
    return response


@pytest.fixture(autouse=True)
def clean_global_state():
    """Reset process-wide config and push state around every test."""
    reset_config()
    teardown_push()
    yield
    teardown_push()
    reset_config()


@pytest.fixture
def test_config(tmp_path):
    """Test configuration with credentials set and no file logging."""
    config = SystemConfig()
    config.environment = "testing"
    config.secret_key = "test-secret"
    config.admin.password = "hunter2"
    config.push.onesignal_app_id = "app-123"
    config.push.onesignal_rest_api_key = "rest-key"
    config.geo.windy_api_key = "windy-key"
    config.log_file = tmp_path / "logs" / "test.log"
    return config


@pytest.fixture
def mock_session():
    """A requests.Session stand-in; set .get / .post return values per test."""
    session = Mock()
    session.headers = {}
    return session


@pytest.fixture(name="make_response")
def make_response_fixture():
    return make_response


@pytest.fixture
def sample_csv():
    return SAMPLE_CSV


@pytest.fixture
def fixed_today():
    return lambda: datetime.date(2024, 7, 5)


@pytest.fixture
def seeded_rng():
    return random.Random(42)


@pytest.fixture
def mock_report_client(sample_csv):
    from weather_spectrum.hail_reports import parse_hail_csv

    client = Mock()
    client.fetch = Mock(return_value=parse_hail_csv(sample_csv))
    return client


@pytest.fixture
def mock_zip_resolver():
    from weather_spectrum.zip_resolver import ZipLocation, validate_zip

    resolver = Mock()

    def resolve(zip_code):
        validate_zip(zip_code)
        return ZipLocation(zip_code, 32.7555, -97.3308, 'Fort Worth', 'TX')
    resolver.resolve = Mock(side_effect=resolve)
    return resolver


@pytest.fixture
def mock_enricher():
    from weather_spectrum.census import EnrichmentResult, EnrichmentSource

    enricher = Mock()
    enricher.lookup = Mock(return_value=EnrichmentResult('76102', 7500, EnrichmentSource.CENSUS))
    return enricher


@pytest.fixture
def flask_test_client(test_config, mock_report_client, mock_zip_resolver, mock_enricher, fixed_today):
    """Test client for the site app with every outbound collaborator mocked."""
    from weather_spectrum.web import create_app

    app = create_app(
        test_config,
        testing=True,
        report_client=mock_report_client,
        zip_resolver=mock_zip_resolver,
        enricher=mock_enricher,
        nws_client=Mock(),
        webcam_client=Mock(),
        broadcaster=Mock(),
        today=fixed_today,
    )
    with app.test_client() as client:
        with app.app_context():
            yield client


@pytest.fixture
def auth_headers():
    """Relay authentication headers for testing."""
    return {
        "Authorization": "Bearer relay-secret",
        "Content-Type": "application/json"
    }


# Custom pytest markers
def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests (fast, isolated)"
    )
    config.addinivalue_line(
        "markers", "api: marks tests as API tests (HTTP endpoints)"
    )
