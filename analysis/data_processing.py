#!/usr/bin/env python3
"""
This module turns the raw CSSE tables into tidy long tables:

1. Raw loading: fetch each source and check the columns it must carry
2. Reshaping: one column per date (wide) into one row per entity and date (long)
3. Joining: cases with deaths per entity and date, then population

Global and US scopes are handled separately. The US time series carry their
own county population, the global ones get theirs from the UID lookup table.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional, Sequence

import pandas as pd

from analysis.data_fetch import Fetcher
from core.config import PipelineParameters
from models.errors import MalformedInputError
from models.tables import (
    GLOBAL_ENTITY, US_COUNTY_ENTITY,
    JoinedTable, LongSeries, PopulationLookup, VaccinationTable,
)

logger = logging.getLogger(__name__)

GLOBAL_ID_COLUMNS = ['Province/State', 'Country/Region', 'Lat', 'Long']
US_ID_COLUMNS = ['UID', 'iso2', 'iso3', 'code3', 'FIPS', 'Admin2', 'Province_State',
                 'Country_Region', 'Lat', 'Long_', 'Combined_Key']
US_DEATHS_ID_COLUMNS = US_ID_COLUMNS + ['Population']
LOOKUP_COLUMNS = ['Province_State', 'Country_Region', 'Population']

# Source column name -> tidy column name
COLUMN_NAMES = {
    'Province/State': 'province_state',
    'Province_State': 'province_state',
    'Country/Region': 'country_region',
    'Country_Region': 'country_region',
    'Admin2': 'admin2',
    'Combined_Key': 'combined_key',
    'Population': 'population',
    'location': 'state',
}

# Geodetic and code columns carried by the sources but not by the tidy tables
DROP_COLUMNS = ['Lat', 'Long', 'Long_', 'UID', 'iso2', 'iso3', 'code3', 'FIPS']

LABEL_COLUMNS = ['admin2', 'province_state', 'country_region', 'combined_key', 'state']


def parse_date_headers(headers: Sequence, date_format: str = '%m/%d/%y') -> Dict:
    """
    Map each date column header to its timestamp.

    Raises:
        MalformedInputError: if a header does not match `date_format`
    """
    dates = {}
    for header in headers:
        try:
            dates[header] = pd.Timestamp(datetime.strptime(str(header).strip(), date_format))
        except ValueError as e:
            raise MalformedInputError(
                f"Column header {header!r} is not a date in format {date_format}"
            ) from e
    return dates


def to_counts(values: pd.Series, name: str) -> pd.Series:
    """
    Convert a column to numbers. Empty cells become NaN.

    Raises:
        MalformedInputError: if a non-empty cell is not numeric
    """
    if pd.api.types.is_numeric_dtype(values):
        return values.astype(float)
    numeric = pd.to_numeric(values, errors='coerce')
    bad = numeric.isna() & values.notna() & (values.astype(str).str.strip() != '')
    if bad.any():
        examples = values[bad].astype(str).unique()[:3].tolist()
        raise MalformedInputError(f"Non-numeric values in {name}: {examples}")
    return numeric.astype(float)


def tidy_columns(df: pd.DataFrame) -> pd.DataFrame:
    """Rename source columns, drop geodetic/code columns, make labels plain strings"""
    df = df.rename(columns=COLUMN_NAMES)
    df = df.drop(columns=[col for col in DROP_COLUMNS if col in df.columns])
    for col in LABEL_COLUMNS:
        if col in df.columns:
            df[col] = df[col].fillna('').astype(str).str.strip()
    return df


def combined_key(*parts) -> str:
    """Join the non-empty label parts with ', ' (e.g. 'Quebec, Canada' or 'France')"""
    return ', '.join(str(p).strip() for p in parts if isinstance(p, str) and p.strip())


def build_combined_keys(df: pd.DataFrame, columns: Sequence[str]) -> pd.Series:
    """Vectorised `combined_key` over the given label columns"""
    if df.empty:
        return pd.Series([], index=df.index, dtype=object)
    return pd.Series(
        [combined_key(*row) for row in df[list(columns)].itertuples(index=False)],
        index=df.index, dtype=object
    )


def wide_to_long(df: pd.DataFrame, id_columns: List[str], value_name: str,
                 date_format: str = '%m/%d/%y') -> pd.DataFrame:
    """
    Convert a wide time series into long format.

    Every column not in `id_columns` must be a date header. A table with n
    rows and k date columns yields exactly n*k rows.

    Args:
        df: Wide table
        id_columns: Identifier columns repeated on every output row
        value_name: Name of the value column after melting
        date_format: strptime format of the date headers

    Returns:
        Long DataFrame: id_columns, date, value_name
    """
    missing = [col for col in id_columns if col not in df.columns]
    if missing:
        raise MalformedInputError(f"Wide table missing identifier columns: {missing}")

    date_cols = [col for col in df.columns if col not in id_columns]
    if not date_cols:
        raise MalformedInputError("Wide table has no date columns")
    dates = parse_date_headers(date_cols, date_format)

    long_df = pd.melt(
        df,
        id_vars=id_columns,
        value_vars=date_cols,
        var_name='date',
        value_name=value_name
    )
    long_df['date'] = pd.to_datetime(long_df['date'].map(dates))
    long_df[value_name] = to_counts(long_df[value_name], value_name)
    return long_df


class RawLoader:
    """Fetches the source tables and checks their shape"""

    def __init__(self, fetcher: Fetcher, params: Optional[PipelineParameters] = None):
        self.fetcher = fetcher
        self.params = params or PipelineParameters()

    def _fetch(self, key: str, required: List[str]) -> pd.DataFrame:
        df = self.fetcher.fetch(key)
        missing = [col for col in required if col not in df.columns]
        if missing:
            raise MalformedInputError(f"Source {key} missing columns: {missing}")
        logger.info(f"Loaded {key}: {len(df)} rows, {len(df.columns)} columns")
        return df

    def load_global(self, metric: str) -> pd.DataFrame:
        """Raw global wide table ('cases' or 'deaths')"""
        return self._fetch(f'global_{metric}', GLOBAL_ID_COLUMNS)

    def load_us(self, metric: str) -> pd.DataFrame:
        """Raw US wide table ('cases' or 'deaths')"""
        required = US_DEATHS_ID_COLUMNS if metric == 'deaths' else US_ID_COLUMNS
        return self._fetch(f'us_{metric}', required)

    def load_population_lookup(self) -> PopulationLookup:
        """Population by (province_state, country_region), geodetic/display columns dropped"""
        df = self._fetch('population_lookup', LOOKUP_COLUMNS)
        df = tidy_columns(df[LOOKUP_COLUMNS])
        df['population'] = to_counts(df['population'], 'population')
        return PopulationLookup(df)

    def load_vaccinations(self) -> VaccinationTable:
        """Daily per-state vaccination rates, tracked fields only"""
        fields = list(self.params.vaccination_fields)
        df = self._fetch('us_vaccinations', ['date', 'location'] + fields)
        df = tidy_columns(df[['location', 'date'] + fields])
        try:
            df['date'] = pd.to_datetime(df['date'], format='%Y-%m-%d')
        except ValueError as e:
            raise MalformedInputError(f"Unparseable vaccination date: {e}") from e
        for field in fields:
            df[field] = to_counts(df[field], field)
        return VaccinationTable(df, fields=tuple(fields))


class Reshaper:
    """Wide CSSE tables to long `LongSeries`"""

    def __init__(self, date_format: str = '%m/%d/%y'):
        self.date_format = date_format

    def global_series(self, raw: pd.DataFrame, metric: str) -> LongSeries:
        """
        Schema: province_state, country_region, date, <metric>
        """
        long_df = tidy_columns(wide_to_long(raw, GLOBAL_ID_COLUMNS, metric, self.date_format))
        long_df = long_df[list(GLOBAL_ENTITY) + ['date', metric]]
        logger.info(f"Reshaped global {metric}: {len(raw)} entities -> {len(long_df)} rows")
        return LongSeries(long_df, GLOBAL_ENTITY, metric=metric)

    def us_series(self, raw: pd.DataFrame, metric: str) -> LongSeries:
        """
        Schema: admin2, province_state, country_region, combined_key, date, <metric>
        (+ population for deaths)
        """
        id_columns = US_DEATHS_ID_COLUMNS if 'Population' in raw.columns else US_ID_COLUMNS
        long_df = tidy_columns(wide_to_long(raw, id_columns, metric, self.date_format))
        keep = list(US_COUNTY_ENTITY) + ['combined_key', 'date', metric]
        if 'population' in long_df.columns:
            long_df['population'] = to_counts(long_df['population'], 'population')
            keep.append('population')
        long_df = long_df[keep]
        logger.info(f"Reshaped US {metric}: {len(raw)} counties -> {len(long_df)} rows")
        return LongSeries(long_df, US_COUNTY_ENTITY, metric=metric)


class Joiner:
    """Merges cases with deaths and attaches population"""

    @staticmethod
    def join_metrics(cases: LongSeries, deaths: LongSeries) -> pd.DataFrame:
        """
        Full outer join on entity and date. A record present in one metric
        only keeps the other metric as NaN.

        Raises:
            MalformedInputError: if an entity/date key occurs more than once
        """
        if tuple(cases.entity_columns) != tuple(deaths.entity_columns):
            raise ValueError("Cases and deaths must share entity columns")
        keys = list(cases.entity_columns) + ['date']
        left = cases.to_frame()
        right = deaths.to_frame()
        shared = [col for col in left.columns if col in right.columns and col not in keys]

        try:
            merged = pd.merge(
                left, right,
                on=keys,
                how='outer',
                suffixes=('', '_other'),
                validate='one_to_one'
            )
        except pd.errors.MergeError as e:
            raise MalformedInputError(f"Duplicate entity/date keys in time series: {e}") from e

        # Labels such as combined_key come from whichever side has the row
        for col in shared:
            merged[col] = merged[col].where(merged[col].notna(), merged[f'{col}_other'])
            merged = merged.drop(columns=f'{col}_other')
        return merged

    @staticmethod
    def attach_population(df: pd.DataFrame, lookup: PopulationLookup) -> pd.DataFrame:
        """
        Left join population on (province_state, country_region).

        Ambiguous keys take the first lookup row. Entities with no match keep
        population 0 and are dropped later by the population > 0 filters.
        """
        ambiguous = lookup.ambiguous_keys()
        if ambiguous:
            logger.debug(f"{ambiguous} population keys have several rows; using the first")

        keys = list(lookup.entity_columns)
        merged = pd.merge(
            df.drop(columns=[col for col in ['population'] if col in df.columns]),
            lookup.resolved()[keys + ['population']],
            on=keys,
            how='left',
            validate='many_to_one'
        )

        unresolved = merged.loc[merged['population'].isna(), keys].drop_duplicates()
        if not unresolved.empty:
            names = build_combined_keys(unresolved, keys).tolist()
            logger.warning(f"No population for {len(names)} entities: "
                           f"{names[:10]}{'...' if len(names) > 10 else ''}")

        merged['population'] = merged['population'].fillna(0)
        return merged

    def join_global(self, cases: LongSeries, deaths: LongSeries,
                    lookup: PopulationLookup) -> JoinedTable:
        """
        Schema: province_state, country_region, date, cases, deaths, population, combined_key
        """
        merged = self.join_metrics(cases, deaths)
        merged = self.attach_population(merged, lookup)
        merged['combined_key'] = build_combined_keys(merged, ['province_state', 'country_region'])
        cols = list(GLOBAL_ENTITY) + ['date', 'cases', 'deaths', 'population', 'combined_key']
        logger.info(f"Joined global series: {len(merged)} rows")
        return JoinedTable(merged[cols], GLOBAL_ENTITY)

    def join_us(self, cases: LongSeries, deaths: LongSeries) -> JoinedTable:
        """
        Population comes from the deaths table, one figure per county.

        Schema: admin2, province_state, country_region, date, cases, deaths, population, combined_key
        """
        merged = self.join_metrics(cases, deaths)
        if 'population' not in merged.columns:
            raise MalformedInputError("US deaths series carries no population column")
        merged['population'] = merged['population'].fillna(0)

        missing_key = merged['combined_key'].isna() | (merged['combined_key'] == '')
        if missing_key.any():
            merged.loc[missing_key, 'combined_key'] = build_combined_keys(
                merged.loc[missing_key], list(US_COUNTY_ENTITY)
            )
        cols = list(US_COUNTY_ENTITY) + ['date', 'cases', 'deaths', 'population', 'combined_key']
        logger.info(f"Joined US series: {len(merged)} rows")
        return JoinedTable(merged[cols], US_COUNTY_ENTITY)
