"""Tests for the command line entry point."""

import datetime
from unittest.mock import Mock

import pytest

from weather_spectrum import cli
from weather_spectrum.hail_reports import FeedUnavailableError, parse_hail_csv
from weather_spectrum.zip_resolver import ZipLocation


@pytest.fixture
def report_client(monkeypatch, sample_csv):
    client = Mock()
    client.fetch.return_value = parse_hail_csv(sample_csv)
    monkeypatch.setattr(cli, 'HailReportClient', Mock(return_value=client))
    return client


@pytest.mark.unit
def test_hail_lists_reports(report_client, capsys):
    assert cli.main(['hail', '--date', '2024-07-04']) == 0

    report_client.fetch.assert_called_once_with(datetime.date(2024, 7, 4))
    out = capsys.readouterr().out
    assert '3 hail reports on 2024-07-04' in out
    assert 'Golf Ball' in out


@pytest.mark.unit
def test_hail_filtered_by_zip(report_client, monkeypatch, capsys):
    resolver = Mock()
    resolver.resolve.return_value = ZipLocation('76102', 32.7555, -97.3308, 'Fort Worth', 'TX')
    monkeypatch.setattr(cli, 'ZipResolver', Mock(return_value=resolver))

    assert cli.main(['hail', '--date', '2024-07-04', '--zip', '76102']) == 0

    assert '2 hail reports within 50 miles of Fort Worth, TX' in capsys.readouterr().out


@pytest.mark.unit
def test_hail_feed_error_exits_nonzero(report_client):
    report_client.fetch.side_effect = FeedUnavailableError('No hail reports found for 2024-07-04')

    assert cli.main(['hail', '--date', '2024-07-04']) == 1


@pytest.mark.unit
def test_subcommand_required():
    with pytest.raises(SystemExit):
        cli.main([])
