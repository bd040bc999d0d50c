#!/usr/bin/env python3
"""Report Configuration and Parameter Documentation.

This module centralizes every tunable of the report using Pydantic for
validation and documentation.

Key features:
- Type validation and coercion
- Immutable configuration (frozen=True)
- Metadata describing where each input comes from
- Programmatic access to documentation

Parameters are organized by category:
- Sources: where the six input tables live
- Fetch: HTTP timeout and retry behaviour
- Pipeline: date format, delta filter policy, vaccination fields
- Plot: chart selection and output format

Usage:
    >>> from core.config import ReportConfig
    >>> config = ReportConfig()
    >>> print(config.pipeline.delta_policy)  # DeltaFilterPolicy.JOINT
    >>> config.sources.describe('base_url')  # Print full documentation
"""

import json
from enum import Enum
from pathlib import Path
from typing import Dict, Any, List, Union

from pydantic import BaseModel, Field, field_validator


class DeltaFilterPolicy(str, Enum):
    """How negative daily deltas are filtered"""
    JOINT = 'joint'
    INDEPENDENT = 'independent'


def _describe(model: BaseModel, param_name: str) -> None:
    if param_name not in type(model).model_fields:
        raise ValueError(f"Unknown parameter: {param_name}")

    field_info = type(model).model_fields[param_name]
    value = getattr(model, param_name)
    extra = field_info.json_schema_extra or {}

    print(f"\n{'=' * 70}")
    print(f"Parameter: {param_name}")
    print(f"{'=' * 70}")
    print(f"Value: {value}")
    if 'units' in extra:
        print(f"Units: {extra['units']}")
    print(f"\nDescription:")
    print(f"  {field_info.description}")
    if 'source' in extra:
        print(f"\nSource:")
        print(f"  {extra['source']}")
    if 'notes' in extra:
        print(f"\nNotes:")
        print(f"  {extra['notes']}")


# ============================================================================
# Data Sources
# ============================================================================

CSSE_BASE_URL = ("https://raw.githubusercontent.com/CSSEGISandData/COVID-19/master/"
                 "csse_covid_19_data/csse_covid_19_time_series/")
CSSE_LOOKUP_URL = ("https://raw.githubusercontent.com/CSSEGISandData/COVID-19/master/"
                   "csse_covid_19_data/UID_ISO_FIPS_LookUp_Table.csv")
OWID_VACCINATION_URL = ("https://raw.githubusercontent.com/owid/covid-19-data/master/"
                        "public/data/vaccinations/us_state_vaccinations.csv")


class DataSources(BaseModel):
    """Locations of the input tables.

    The four time series share `base_url`; the population lookup and the
    vaccination series have their own URLs. `files` maps each source key to
    the file name used both for download and for local/cached copies.
    """

    model_config = {'frozen': True, 'extra': 'forbid'}

    base_url: str = Field(
        default=CSSE_BASE_URL,
        description="Directory URL of the CSSE time-series CSV files.",
        json_schema_extra={
            'source': 'Johns Hopkins CSSE COVID-19 repository',
            'notes': 'Must end with a slash; file names are appended to it',
        }
    )

    population_lookup_url: str = Field(
        default=CSSE_LOOKUP_URL,
        description="URL of the UID/ISO/FIPS lookup table holding population per province and country.",
        json_schema_extra={'source': 'Johns Hopkins CSSE COVID-19 repository'}
    )

    vaccination_url: str = Field(
        default=OWID_VACCINATION_URL,
        description="URL of the per-state US vaccination time series.",
        json_schema_extra={'source': 'Our World in Data COVID-19 vaccination dataset'}
    )

    files: Dict[str, str] = Field(
        default={
            'global_cases': 'time_series_covid19_confirmed_global.csv',
            'global_deaths': 'time_series_covid19_deaths_global.csv',
            'us_cases': 'time_series_covid19_confirmed_US.csv',
            'us_deaths': 'time_series_covid19_deaths_US.csv',
            'population_lookup': 'UID_ISO_FIPS_LookUp_Table.csv',
            'us_vaccinations': 'us_state_vaccinations.csv',
        },
        description="File name of every input table, keyed by source key.",
    )

    @field_validator('base_url')
    @classmethod
    def validate_base_url(cls, v):
        """Ensure file names can be appended."""
        if not v.endswith('/'):
            raise ValueError(f"base_url must end with '/', got {v}")
        return v

    @field_validator('files')
    @classmethod
    def validate_files(cls, v):
        """Ensure every source key has a file name."""
        missing = [key for key in SOURCE_KEYS if key not in v]
        if missing:
            raise ValueError(f"files missing source keys: {missing}")
        return v

    def url_for(self, key: str) -> str:
        """Full download URL of a source."""
        if key not in self.files:
            raise ValueError(f"Unknown source: {key}")
        if key == 'population_lookup':
            return self.population_lookup_url
        if key == 'us_vaccinations':
            return self.vaccination_url
        return self.base_url + self.files[key]

    def describe(self, param_name: str) -> None:
        """Print documentation for a parameter."""
        _describe(self, param_name)


SOURCE_KEYS: List[str] = [
    'global_cases', 'global_deaths', 'us_cases', 'us_deaths',
    'population_lookup', 'us_vaccinations',
]


# ============================================================================
# Fetch Parameters
# ============================================================================

class FetchParameters(BaseModel):
    """HTTP retrieval settings."""

    model_config = {'frozen': True, 'extra': 'forbid'}

    timeout: float = Field(
        default=60.0,
        gt=0.0,
        le=600.0,
        description="Timeout of a single HTTP request.",
        json_schema_extra={'units': 'seconds'}
    )

    max_retries: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts per source before the run is aborted.",
    )

    backoff_base: float = Field(
        default=2.0,
        ge=0.0,
        description="Wait before retry n is backoff_base ** n seconds.",
        json_schema_extra={'units': 'seconds'}
    )

    user_agent: str = Field(
        default='covid-timeseries-report/1.0',
        description="User-Agent header sent with every request.",
    )

    def describe(self, param_name: str) -> None:
        """Print documentation for a parameter."""
        _describe(self, param_name)


# ============================================================================
# Pipeline Parameters
# ============================================================================

DEFAULT_VACCINATION_FIELDS: List[str] = [
    'people_fully_vaccinated_per_hundred',
    'total_vaccinations_per_hundred',
    'people_vaccinated_per_hundred',
    'distributed_per_hundred',
    'total_boosters_per_hundred',
]


class PipelineParameters(BaseModel):
    """Settings of the tidy/derive stages."""

    model_config = {'frozen': True, 'extra': 'forbid'}

    date_format: str = Field(
        default='%m/%d/%y',
        description="strptime format of the date column headers in the wide time series.",
        json_schema_extra={
            'source': 'CSSE time-series headers, e.g. 1/22/20',
            'notes': 'A header that does not match aborts the run',
        }
    )

    delta_policy: DeltaFilterPolicy = Field(
        default=DeltaFilterPolicy.JOINT,
        description="Negative-delta filter. 'joint' drops a day if either new_cases or new_deaths is negative; "
                    "'independent' filters each metric on its own and keeps the other metric's value.",
    )

    vaccination_fields: List[str] = Field(
        default_factory=lambda: list(DEFAULT_VACCINATION_FIELDS),
        min_length=1,
        description="Vaccination rate columns kept and reduced to their per-state maximum.",
    )

    state_aliases: Dict[str, str] = Field(
        default={'New York State': 'New York'},
        description="Vaccination state labels folded into their canonical state name before grouping.",
        json_schema_extra={'source': 'OWID reports New York as "New York State"'}
    )

    regression_predictor: str = Field(
        default='people_fully_vaccinated_per_hundred',
        description="Vaccination field used as the regression predictor of deaths per hundred.",
    )

    @field_validator('regression_predictor')
    @classmethod
    def validate_predictor(cls, v, info):
        """Predictor must be one of the tracked fields."""
        fields = info.data.get('vaccination_fields')
        if fields is not None and v not in fields:
            raise ValueError(f"regression_predictor {v} is not in vaccination_fields")
        return v

    def describe(self, param_name: str) -> None:
        """Print documentation for a parameter."""
        _describe(self, param_name)


# ============================================================================
# Plot Parameters
# ============================================================================

class PlotParameters(BaseModel):
    """Chart selection and output settings."""

    model_config = {'frozen': True, 'extra': 'forbid'}

    top_n: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Number of countries/states shown in the ranking bar charts.",
    )

    highlight_states: List[str] = Field(
        default=['New York', 'California', 'Texas', 'Florida'],
        description="States drawn in the daily new cases/deaths line charts.",
    )

    dpi: int = Field(
        default=300,
        ge=50,
        le=1200,
        description="Resolution of saved figures.",
    )

    file_format: str = Field(
        default='pdf',
        description="Figure file extension.",
    )

    @field_validator('file_format')
    @classmethod
    def validate_format(cls, v):
        """Only formats matplotlib writes without extra backends."""
        if v not in ('pdf', 'png', 'svg'):
            raise ValueError(f"file_format must be pdf, png or svg, got {v}")
        return v

    def describe(self, param_name: str) -> None:
        """Print documentation for a parameter."""
        _describe(self, param_name)


# ============================================================================
# Complete Configuration
# ============================================================================

class ReportConfig(BaseModel):
    """Complete report configuration with all parameter categories.

    Usage:
        >>> config = ReportConfig()
        >>> config.fetch.max_retries
        >>> config.to_dict()
        >>> config = ReportConfig.from_json('report.json')
    """

    model_config = {'frozen': True, 'extra': 'forbid'}

    sources: DataSources = Field(
        default_factory=DataSources,
        description="Input table locations"
    )

    fetch: FetchParameters = Field(
        default_factory=FetchParameters,
        description="HTTP retrieval settings"
    )

    pipeline: PipelineParameters = Field(
        default_factory=PipelineParameters,
        description="Tidy/derive settings"
    )

    plot: PlotParameters = Field(
        default_factory=PlotParameters,
        description="Chart settings"
    )

    @classmethod
    def from_json(cls, path: Union[str, Path]) -> 'ReportConfig':
        """Build a configuration from a JSON file of overrides."""
        path = Path(path)
        assert path.exists(), f"Config file {path} not found"
        with open(path) as f:
            return cls.model_validate(json.load(f))

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        """Export all parameters as nested dictionary."""
        return {
            'sources': self.sources.model_dump(),
            'fetch': self.fetch.model_dump(),
            'pipeline': self.pipeline.model_dump(mode='json'),
            'plot': self.plot.model_dump(),
        }

    def describe_all(self) -> None:
        """Print documentation for all parameters in all categories."""
        for category_name in ['sources', 'fetch', 'pipeline', 'plot']:
            category = getattr(self, category_name)
            print(f"\n{'#' * 70}")
            print(f"# {category_name.upper()}")
            print(f"{'#' * 70}")
            for param_name in type(category).model_fields.keys():
                category.describe(param_name)


if __name__ == "__main__":
    config = ReportConfig()

    print("=" * 80)
    print("REPORT PARAMETERS")
    print("=" * 80)
    for category_name, params in config.to_dict().items():
        print(f"\n{category_name.upper()}")
        print("-" * 80)
        for param_name, value in params.items():
            print(f"  {param_name:22s} = {value}")
