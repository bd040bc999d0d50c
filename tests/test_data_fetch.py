import pandas as pd
import pytest
import requests

from analysis.data_fetch import FrameFetcher, HttpCsvFetcher, LocalCsvFetcher
from core.config import DataSources, FetchParameters
from models.errors import DataFetchError, ReportError

CSV = "Province/State,Country/Region,Lat,Long,1/22/20\n,Alpha,0,0,1\n"


class FakeResponse:

    def __init__(self, text='', status_code=200):
        self.text = text
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


class FakeSession:
    """Returns the queued responses in order; exceptions are raised"""

    def __init__(self, responses):
        self.responses = list(responses)
        self.headers = {}
        self.calls = []

    def get(self, url, timeout=None):
        self.calls.append((url, timeout))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def sleeps(monkeypatch):
    waited = []
    monkeypatch.setattr('analysis.data_fetch.time.sleep', waited.append)
    return waited


class TestHttpCsvFetcher:

    def test_success(self, sleeps):
        session = FakeSession([FakeResponse(CSV)])
        df = HttpCsvFetcher(session=session).fetch('global_cases')
        assert df['Country/Region'].tolist() == ['Alpha']
        assert session.calls == [(DataSources().url_for('global_cases'), 60.0)]
        assert session.headers['User-Agent'] == FetchParameters().user_agent
        assert sleeps == []

    def test_retries_with_backoff(self, sleeps):
        session = FakeSession([requests.ConnectionError('down'), FakeResponse(status_code=503),
                               FakeResponse(CSV)])
        df = HttpCsvFetcher(session=session).fetch('global_cases')
        assert len(df) == 1
        assert sleeps == [1.0, 2.0]

    def test_gives_up_after_max_retries(self, sleeps):
        params = FetchParameters(max_retries=2)
        session = FakeSession([requests.Timeout('slow'), requests.Timeout('slow')])
        with pytest.raises(DataFetchError) as excinfo:
            HttpCsvFetcher(params=params, session=session).fetch('us_deaths')
        assert excinfo.value.source_key == 'us_deaths'
        assert isinstance(excinfo.value, ReportError)
        assert len(session.calls) == 2
        assert sleeps == [1.0]

    def test_cache_writes_downloaded_text(self, tmp_path, sleeps):
        session = FakeSession([FakeResponse(CSV)])
        HttpCsvFetcher(cache_dir=tmp_path / 'data', session=session).fetch('global_cases')
        cached = tmp_path / 'data' / DataSources().files['global_cases']
        assert cached.read_text() == CSV

    def test_lookup_and_vaccination_urls(self):
        sources = DataSources()
        assert sources.url_for('population_lookup') == sources.population_lookup_url
        assert sources.url_for('us_vaccinations') == sources.vaccination_url


class TestLocalCsvFetcher:

    def test_reads_named_file(self, tmp_path):
        (tmp_path / DataSources().files['global_deaths']).write_text(CSV)
        df = LocalCsvFetcher(tmp_path).fetch('global_deaths')
        assert df['1/22/20'].tolist() == [1]

    def test_missing_file(self, tmp_path):
        with pytest.raises(DataFetchError, match='not found'):
            LocalCsvFetcher(tmp_path).fetch('global_deaths')

    def test_unknown_key(self, tmp_path):
        with pytest.raises(DataFetchError):
            LocalCsvFetcher(tmp_path).fetch('hospitalizations')


def test_frame_fetcher_returns_copies():
    frame = pd.DataFrame({'a': [1]})
    fetcher = FrameFetcher({'x': frame})
    fetcher.fetch('x').loc[0, 'a'] = 99
    assert fetcher.fetch('x')['a'].tolist() == [1]
    with pytest.raises(DataFetchError):
        fetcher.fetch('y')
