"""Tests for the site app."""

import re
from unittest.mock import Mock

import pytest

from weather_spectrum.hail_reports import EmptyFeedError, HailEvent
from weather_spectrum.weather import CurrentConditions, ForecastDay, WeatherAlert, WeatherUnavailableError
from weather_spectrum.web import ControllerRegistry, create_app
from weather_spectrum.webcams import Webcam, WebcamsUnavailableError
from weather_spectrum.zip_resolver import ZipLookupError


class FakeClock:
    def __init__(self, now=1_000_000.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def collaborators(mock_report_client, mock_zip_resolver, mock_enricher, fixed_today):
    return {
        'report_client': mock_report_client,
        'zip_resolver': mock_zip_resolver,
        'enricher': mock_enricher,
        'nws_client': Mock(),
        'webcam_client': Mock(),
        'broadcaster': Mock(),
        'today': fixed_today,
        'clock': FakeClock(),
    }


@pytest.fixture
def app(test_config, collaborators):
    return create_app(test_config, testing=True, **collaborators)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.mark.api
class TestPages:

    @pytest.mark.parametrize("path", ['/', '/hail-map', '/admin'])
    def test_pages_render(self, client, path):
        response = client.get(path)

        assert response.status_code == 200
        assert b'The Weather Spectrum' in response.data

    def test_hail_map_page_loads_leaflet(self, client):
        assert b'leaflet' in client.get('/hail-map').data

    @pytest.mark.parametrize("path", ['/', '/hail-map'])
    def test_interpolated_text_is_escaped(self, client, path):
        html = client.get(path).get_data(as_text=True)
        # Request plumbing only: URLs, ids and counts written with textContent
        plumbing = {'api', 'id', 'query', 'coords', 'weather.lat', 'weather.lon', 'view.event_count',
                    "encodeURIComponent(document.getElementById('zip').value)"}

        assert 'const esc = ' in html
        for expression in re.findall(r'\$\{([^}]*)\}', html):
            assert expression.startswith('esc(') or expression in plumbing, expression

    def test_hostile_feed_row_stays_data(self, client, collaborators):
        collaborators['report_client'].fetch.return_value = [HailEvent(
            1, '1530', 1.75, '<img src=x onerror=alert(1)>', 'Tarrant', 'TX', 32.75, -97.33,
            '<script>steal()</script>',
        )]
        client.post('/api/hail-map/date', json={'date_range': 'today'})

        detail = client.post('/api/hail-map/events/1/select').get_json()
        html = client.get('/hail-map').get_data(as_text=True)

        assert detail['event']['comments'] == '<script>steal()</script>'
        assert '<script>steal()' not in html
        assert 'onerror=alert' not in html
        assert '${esc(d.event.comments)}' in html
        assert '${esc(d.event.location)}' in html

    def test_failed_date_load_does_not_render(self, client):
        html = client.get('/hail-map').get_data(as_text=True)

        assert 'const apply = (state) => state.error ? alert(state.error) : render(state);' in html
        assert '.then(render)' not in html

    def test_unknown_route_is_404(self, client):
        assert client.get('/no-such-page').status_code == 404


@pytest.mark.api
class TestHailMapApi:

    def test_initial_state(self, client):
        data = client.get('/api/hail-map').get_json()

        assert data['filters']['date_range'] == 'sample'
        assert data['view']['event_count'] == 5
        assert data['message'] is None

    def test_date_selection(self, client, collaborators):
        data = client.post('/api/hail-map/date', json={'date_range': 'today'}).get_json()

        assert data['filters']['date_range'] == 'today'
        assert data['view']['event_count'] == 3

    def test_empty_feed_falls_back(self, client, collaborators):
        collaborators['report_client'].fetch.side_effect = EmptyFeedError('No hail reports for this date')

        data = client.post('/api/hail-map/date', json={'date_range': 'yesterday'}).get_json()

        assert data['view']['event_count'] == 5
        assert data['message']['text'] == 'No hail reports for this date - Showing sample data instead'

    def test_invalid_range_is_400(self, client):
        response = client.post('/api/hail-map/date', json={'date_range': 'someday'})

        assert response.status_code == 400
        assert response.get_json()['type'] == 'validation_error'

    def test_reload(self, client, collaborators):
        client.post('/api/hail-map/date', json={'date_range': 'today'})
        client.post('/api/hail-map/reload')

        assert collaborators['report_client'].fetch.call_count == 2

    def test_zip_filter_and_clear(self, client):
        client.post('/api/hail-map/date', json={'date_range': 'today'})

        filtered = client.post('/api/hail-map/zip', json={'zip': '76102'}).get_json()
        cleared = client.delete('/api/hail-map/zip').get_json()

        assert filtered['view']['event_count'] == 2
        assert filtered['view']['circle'] is not None
        assert cleared['view']['event_count'] == 3
        assert cleared['filters']['zip_filter'] is None

    def test_invalid_zip_is_400(self, client):
        response = client.post('/api/hail-map/zip', json={'zip': '12'})

        assert response.status_code == 400
        assert response.get_json()['error'] == 'Please enter a valid 5-digit ZIP code'

    def test_unknown_zip_is_404(self, client, collaborators):
        collaborators['zip_resolver'].resolve.side_effect = ZipLookupError('00000')

        response = client.post('/api/hail-map/zip', json={'zip': '00000'})

        assert response.status_code == 404
        assert response.get_json()['error'] == 'Could not find ZIP code. Please try again.'

    def test_select_event(self, client, collaborators):
        first = client.post('/api/hail-map/events/1/select').get_json()
        client.post('/api/hail-map/events/1/select')

        assert first['zip_code'] == '76102'
        assert first['status'] == 'resolved'
        assert collaborators['enricher'].lookup.call_count == 1

    def test_select_unknown_event_is_404(self, client):
        assert client.post('/api/hail-map/events/42/select').status_code == 404

    def test_close_selection(self, client):
        client.post('/api/hail-map/events/1/select')

        data = client.delete('/api/hail-map/selection').get_json()

        assert data['selected'] is None

    def test_sessions_have_separate_state(self, app):
        alice, bob = app.test_client(), app.test_client()

        alice.post('/api/hail-map/date', json={'date_range': 'today'})

        assert alice.get('/api/hail-map').get_json()['filters']['date_range'] == 'today'
        assert bob.get('/api/hail-map').get_json()['filters']['date_range'] == 'sample'
        assert len(app.extensions['hail_map_registry']) == 2


@pytest.mark.unit
def test_registry_evicts_oldest():
    registry = ControllerRegistry(Mock, max_sessions=2)

    first = registry.get('a')
    registry.get('b')
    registry.get('a')
    registry.get('c')

    assert len(registry) == 2
    assert registry.get('a') is first


@pytest.mark.api
class TestWeatherApi:

    def test_weather_by_coordinates(self, client, collaborators):
        collaborators['nws_client'].current_conditions.return_value = CurrentConditions(
            'Fort Worth, TX', 88, 'Sunny', 32.7555, -97.3308,
            [ForecastDay('Today', 95, 75, 'Sunny', 'sun')],
        )

        data = client.get('/api/weather?lat=32.7555&lon=-97.3308').get_json()

        assert data['temperature_f'] == 88
        assert data['forecast'][0]['day'] == 'Today'
        collaborators['nws_client'].current_conditions.assert_called_once_with(32.7555, -97.3308, None)

    def test_weather_by_zip(self, client, collaborators):
        collaborators['nws_client'].current_conditions.return_value = CurrentConditions(
            'Fort Worth, TX', 88, 'Sunny', 32.7555, -97.3308,
        )

        client.get('/api/weather?zip=76102')

        collaborators['nws_client'].current_conditions.assert_called_once_with(32.7555, -97.3308, 'Fort Worth, TX')

    def test_weather_bad_coordinates(self, client):
        response = client.get('/api/weather?lat=abc&lon=1')

        assert response.status_code == 400

    def test_weather_unavailable_is_502(self, client, collaborators):
        collaborators['nws_client'].current_conditions.side_effect = WeatherUnavailableError('Location not supported by NWS')

        response = client.get('/api/weather?lat=51.5&lon=-0.12')

        assert response.status_code == 502
        assert response.get_json()['error'] == 'Location not supported by NWS'

    def test_alerts(self, client, collaborators):
        collaborators['nws_client'].active_alerts.return_value = [
            WeatherAlert('a1', 'Tornado Warning', 'Tarrant, TX', 'Take cover', 'Extreme', 'Immediate', 'red'),
        ]

        data = client.get('/api/alerts?lat=32.7&lon=-97.3').get_json()

        assert data['alerts'][0]['style'] == 'red'

    def test_alerts_require_coordinates(self, client):
        assert client.get('/api/alerts').status_code == 400

    def test_alerts_failure_is_empty(self, client, collaborators):
        collaborators['nws_client'].active_alerts.side_effect = WeatherUnavailableError('down')

        response = client.get('/api/alerts?lat=32.7&lon=-97.3')

        assert response.status_code == 200
        assert response.get_json()['alerts'] == []

    def test_webcams(self, client, collaborators):
        collaborators['webcam_client'].nearby.return_value = [
            Webcam('windy-1', 'Downtown', 'https://img/1.jpg', 'Fort Worth', 'Texas', 32.75, -97.33, 1.234),
        ]

        data = client.get('/api/webcams?lat=32.7&lon=-97.3&radius=25').get_json()

        assert data['webcams'][0]['distance_miles'] == 1.2
        assert data['radius_miles'] == 25
        collaborators['webcam_client'].nearby.assert_called_once_with(32.7, -97.3, 25.0)

    def test_webcams_failure(self, client, collaborators):
        collaborators['webcam_client'].nearby.side_effect = WebcamsUnavailableError('Unable to load nearby webcams')

        data = client.get('/api/webcams?lat=32.7&lon=-97.3').get_json()

        assert data['webcams'] == []
        assert data['error'] == 'Unable to load nearby webcams'

    def test_push_config(self, client):
        assert client.get('/api/push/config').get_json() == {'app_id': 'app-123', 'enabled': True}

    def test_unexpected_error_is_json_500(self, client, collaborators):
        collaborators['nws_client'].current_conditions.side_effect = RuntimeError('bug')

        response = client.get('/api/weather?lat=32.7&lon=-97.3')

        assert response.status_code == 500
        assert response.get_json()['type'] == 'internal_error'
