import json

import pytest
from pydantic import ValidationError

from core.config import (
    DEFAULT_VACCINATION_FIELDS, DataSources, DeltaFilterPolicy, PipelineParameters, PlotParameters,
    ReportConfig,
)


def test_defaults():
    config = ReportConfig()
    assert config.pipeline.delta_policy is DeltaFilterPolicy.JOINT
    assert config.pipeline.date_format == '%m/%d/%y'
    assert config.pipeline.vaccination_fields == DEFAULT_VACCINATION_FIELDS
    assert config.pipeline.state_aliases == {'New York State': 'New York'}
    assert config.pipeline.regression_predictor == 'people_fully_vaccinated_per_hundred'
    assert config.fetch.max_retries == 3
    assert config.plot.file_format == 'pdf'


def test_frozen():
    config = ReportConfig()
    with pytest.raises(ValidationError):
        config.fetch.max_retries = 5


def test_url_for():
    sources = DataSources()
    assert sources.url_for('us_cases').endswith('/time_series_covid19_confirmed_US.csv')
    assert sources.url_for('us_cases').startswith(sources.base_url)
    with pytest.raises(ValueError):
        sources.url_for('unknown')


@pytest.mark.parametrize('build', [
    lambda: DataSources(base_url='https://example.org/series'),
    lambda: DataSources(files={'global_cases': 'cases.csv'}),
    lambda: PipelineParameters(regression_predictor='daily_vaccinations'),
    lambda: PipelineParameters(delta_policy='clamp'),
    lambda: PipelineParameters(vaccination_fields=[]),
    lambda: PlotParameters(file_format='jpg'),
    lambda: PlotParameters(top_n=0),
    lambda: ReportConfig(colour='red'),
])
def test_invalid_values_rejected(build):
    with pytest.raises(ValidationError):
        build()


def test_from_json_overrides(tmp_path):
    path = tmp_path / 'report.json'
    path.write_text(json.dumps({
        'pipeline': {'delta_policy': 'independent'},
        'plot': {'top_n': 5, 'file_format': 'png'},
    }))
    config = ReportConfig.from_json(path)
    assert config.pipeline.delta_policy is DeltaFilterPolicy.INDEPENDENT
    assert config.plot.top_n == 5
    assert config.fetch.timeout == 60.0


def test_to_dict_is_json_serializable():
    exported = ReportConfig().to_dict()
    assert set(exported) == {'sources', 'fetch', 'pipeline', 'plot'}
    assert exported['pipeline']['delta_policy'] == 'joint'
    json.dumps(exported)


def test_describe_prints_documentation(capsys):
    DataSources().describe('base_url')
    out = capsys.readouterr().out
    assert 'Parameter: base_url' in out
    assert 'Johns Hopkins CSSE' in out
    with pytest.raises(ValueError):
        DataSources().describe('nope')


def test_vaccination_source_is_owid_state_series():
    url = DataSources().url_for('us_vaccinations')
    assert url == ('https://raw.githubusercontent.com/owid/covid-19-data/master/'
                   'public/data/vaccinations/us_state_vaccinations.csv')
    extra = DataSources.model_fields['vaccination_url'].json_schema_extra
    assert 'Our World in Data' in extra['source']
