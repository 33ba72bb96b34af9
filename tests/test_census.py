"""Tests for census enrichment."""

import random

import pytest
import requests

from weather_spectrum.census import (
    CensusEnricher,
    EnrichmentSource,
    PlaceType,
    RelayCensusClient,
    SENTINEL_RESULT,
    classify_place,
    create_enricher,
    normalize_postcode,
)
from weather_spectrum.config import GeoServicesConfig


def nominatim(postcode=None, **address):
    if postcode:
        address['postcode'] = postcode
    return {'address': address}


CENSUS_76102 = [['P1_001N', 'zip code tabulation area'], ['24817', '76102']]


@pytest.mark.unit
class TestHelpers:

    @pytest.mark.parametrize("raw,expected", [
        ('76102', '76102'),
        ('76102-1234', '76102'),
        ('76102;76104', '76102'),
        ('7610', None),
        ('761023', None),
        ('', None),
        (None, None),
    ])
    def test_normalize_postcode(self, raw, expected):
        assert normalize_postcode(raw) == expected

    def test_classify_place(self):
        assert classify_place({'city': 'Fort Worth'}) is PlaceType.CITY
        assert classify_place({'town': 'Weatherford'}) is PlaceType.CITY
        assert classify_place({'village': 'Aledo'}) is PlaceType.VILLAGE
        assert classify_place({'hamlet': 'Lipan'}) is PlaceType.VILLAGE
        assert classify_place({'county': 'Parker County'}) is PlaceType.OTHER


@pytest.mark.unit
class TestCensusEnricher:

    def make_enricher(self, session, seeded_rng, **config):
        return CensusEnricher(GeoServicesConfig(**config), session=session, timeout=5, rng=seeded_rng)

    def test_census_population_times_share(self, mock_session, make_response, seeded_rng):
        mock_session.get.side_effect = [
            make_response(200, nominatim('76102', city='Fort Worth')),
            make_response(200, CENSUS_76102),
        ]
        enricher = self.make_enricher(mock_session, seeded_rng, census_api_key='census-key')

        result = enricher.lookup(32.7555, -97.3308)

        assert result.zip_code == '76102'
        assert result.population == round(24817 * 0.30)
        assert result.source is EnrichmentSource.CENSUS

        census_call = mock_session.get.call_args_list[1]
        assert census_call[1]['params']['for'] == 'zip code tabulation area:76102'
        assert census_call[1]['params']['get'] == 'P1_001N'
        assert census_call[1]['params']['key'] == 'census-key'

    def test_zip_plus_four_is_truncated(self, mock_session, make_response, seeded_rng):
        mock_session.get.side_effect = [
            make_response(200, nominatim('76102-4321', city='Fort Worth')),
            make_response(200, CENSUS_76102),
        ]
        result = self.make_enricher(mock_session, seeded_rng).lookup(32.7555, -97.3308)

        assert result.zip_code == '76102'

    def test_census_failure_estimates_by_place_type(self, mock_session, make_response, seeded_rng):
        mock_session.get.side_effect = [
            make_response(200, nominatim('76008', village='Aledo')),
            make_response(500),
        ]
        result = self.make_enricher(mock_session, seeded_rng).lookup(32.69, -97.60)

        assert result.zip_code == '76008'
        assert 2000 <= result.population <= 5000
        assert result.source is EnrichmentSource.ESTIMATE

    def test_census_without_rows_estimates(self, mock_session, make_response, seeded_rng):
        mock_session.get.side_effect = [
            make_response(200, nominatim('76102', city='Fort Worth')),
            make_response(200, [['P1_001N', 'zip code tabulation area']]),
        ]
        result = self.make_enricher(mock_session, seeded_rng).lookup(32.7555, -97.3308)

        assert 10000 <= result.population <= 15000
        assert result.source is EnrichmentSource.ESTIMATE

    def test_no_postcode_estimates_without_census_call(self, mock_session, make_response, seeded_rng):
        mock_session.get.return_value = make_response(200, nominatim(county='Loving County'))

        result = self.make_enricher(mock_session, seeded_rng).lookup(31.8, -103.6)

        assert result.zip_code == 'Unknown'
        assert 500 <= result.population <= 2000
        assert mock_session.get.call_count == 1

    def test_geocoding_failure_returns_sentinel(self, mock_session, seeded_rng):
        mock_session.get.side_effect = requests.ConnectionError('offline')

        result = self.make_enricher(mock_session, seeded_rng).lookup(32.7555, -97.3308)

        assert result is SENTINEL_RESULT
        assert result.to_dict() == {'zip': 'Unknown', 'population': 7383}

    def test_geocoding_http_error_returns_sentinel(self, mock_session, make_response, seeded_rng):
        mock_session.get.return_value = make_response(503)

        assert self.make_enricher(mock_session, seeded_rng).lookup(32.7555, -97.3308) is SENTINEL_RESULT

    def test_estimates_are_reproducible_with_seeded_rng(self, mock_session, make_response):
        def run():
            mock_session.get.side_effect = None
            mock_session.get.return_value = make_response(200, nominatim(town='Weatherford'))
            enricher = CensusEnricher(session=mock_session, rng=random.Random(7))
            return enricher.lookup(32.76, -97.80).population

        assert run() == run()


@pytest.mark.unit
class TestRelayCensusClient:

    def test_relays_lookup(self, mock_session, make_response):
        mock_session.post.return_value = make_response(200, {'zip': '76102', 'population': 7445})
        client = RelayCensusClient('http://relay.local/', session=mock_session)

        result = client.lookup(32.7555, -97.3308)

        assert (result.zip_code, result.population) == ('76102', 7445)
        assert mock_session.post.call_args[0][0] == 'http://relay.local/census-lookup'
        assert mock_session.post.call_args[1]['json'] == {'lat': 32.7555, 'lon': -97.3308}

    def test_sentinel_payload_maps_to_sentinel(self, mock_session, make_response):
        mock_session.post.return_value = make_response(200, {'zip': 'Unknown', 'population': 7383})

        assert RelayCensusClient('http://relay.local', session=mock_session).lookup(0, 0) is SENTINEL_RESULT

    def test_failure_maps_to_sentinel(self, mock_session):
        mock_session.post.side_effect = requests.ConnectionError('relay down')

        assert RelayCensusClient('http://relay.local', session=mock_session).lookup(0, 0) is SENTINEL_RESULT

    def test_malformed_payload_maps_to_sentinel(self, mock_session, make_response):
        mock_session.post.return_value = make_response(200, {'unexpected': True})

        assert RelayCensusClient('http://relay.local', session=mock_session).lookup(0, 0) is SENTINEL_RESULT


@pytest.mark.unit
def test_create_enricher_follows_mode():
    assert isinstance(create_enricher(GeoServicesConfig(enrichment_mode='relay'), 'http://relay'), RelayCensusClient)
    assert isinstance(create_enricher(GeoServicesConfig(), 'http://relay'), CensusEnricher)
