#!/usr/bin/env python3
"""
Tidy Table Value Objects

Each pipeline stage hands its result to the next stage as one of these
objects. A table checks its column schema when it is built, keeps a private
copy of the frame and only ever hands out copies, so a consuming stage can
never change what an earlier stage produced.

Identifier columns hold plain strings. An absent province or county is the
empty string, never NaN.
"""

import pandas as pd
from dataclasses import dataclass, field
from typing import ClassVar, Tuple

GLOBAL_ENTITY = ('province_state', 'country_region')
US_COUNTY_ENTITY = ('admin2', 'province_state', 'country_region')
US_STATE_ENTITY = ('province_state', 'country_region')
COUNT_COLUMNS = ('cases', 'deaths')


@dataclass(frozen=True, eq=False)
class Table:
    """Base class: an immutable, schema-checked DataFrame"""
    frame: pd.DataFrame
    entity_columns: Tuple[str, ...] = ()

    REQUIRED: ClassVar[Tuple[str, ...]] = ()

    def __post_init__(self):
        if not isinstance(self.frame, pd.DataFrame):
            raise TypeError(f"{type(self).__name__} needs a DataFrame, got {type(self.frame).__name__}")
        missing = [col for col in self.required_columns() if col not in self.frame.columns]
        if missing:
            raise ValueError(f"{type(self).__name__} missing required columns: {missing}")
        object.__setattr__(self, 'entity_columns', tuple(self.entity_columns))
        object.__setattr__(self, 'frame', self.frame.reset_index(drop=True).copy())

    def required_columns(self) -> Tuple[str, ...]:
        return tuple(self.entity_columns) + self.REQUIRED

    def to_frame(self) -> pd.DataFrame:
        """Return a copy of the underlying frame"""
        return self.frame.copy()

    @property
    def columns(self) -> list:
        return self.frame.columns.tolist()

    @property
    def empty(self) -> bool:
        return self.frame.empty

    def __len__(self) -> int:
        return len(self.frame)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(rows={len(self.frame)}, columns={self.columns})"


@dataclass(frozen=True, eq=False, repr=False)
class LongSeries(Table):
    """
    One cumulative metric in long form.

    Schema: <entity columns>, date (datetime64), <metric> (float, may be NaN)
    """
    metric: str = 'cases'

    REQUIRED: ClassVar[Tuple[str, ...]] = ('date',)

    def required_columns(self) -> Tuple[str, ...]:
        return super().required_columns() + (self.metric,)


@dataclass(frozen=True, eq=False, repr=False)
class PopulationLookup(Table):
    """
    Population by (province_state, country_region).

    Schema: province_state, country_region, population (float, may be NaN)
    """
    entity_columns: Tuple[str, ...] = GLOBAL_ENTITY

    REQUIRED: ClassVar[Tuple[str, ...]] = ('population',)

    def resolved(self) -> pd.DataFrame:
        """One row per key; the first row wins when a key is ambiguous"""
        return self.frame.drop_duplicates(subset=list(self.entity_columns), keep='first')

    def ambiguous_keys(self) -> int:
        """Number of keys with more than one candidate population row"""
        counts = self.frame.groupby(list(self.entity_columns)).size()
        return int((counts > 1).sum())


@dataclass(frozen=True, eq=False, repr=False)
class JoinedTable(Table):
    """
    Cases and deaths joined per entity and date.

    Schema: <entity columns>, date, cases, deaths, population, combined_key
    """
    REQUIRED: ClassVar[Tuple[str, ...]] = ('date', 'cases', 'deaths', 'population', 'combined_key')


@dataclass(frozen=True, eq=False, repr=False)
class RateTable(Table):
    """
    Latest cumulative counts per entity with per-hundred rates.

    Schema: <entity columns>, population, then <metric> and
    <metric>_per_hundred for every metric in `metrics`.
    """
    metrics: Tuple[str, ...] = COUNT_COLUMNS

    REQUIRED: ClassVar[Tuple[str, ...]] = ('population',)

    def required_columns(self) -> Tuple[str, ...]:
        rate_cols = []
        for metric in self.metrics:
            rate_cols += [metric, f'{metric}_per_hundred']
        return super().required_columns() + tuple(rate_cols)

    def for_metric(self, metric: str) -> 'RateTable':
        """Single-metric table sorted by its rate, highest first (stable for ties)"""
        if metric not in self.metrics:
            raise ValueError(f"Unknown metric: {metric}")
        rate_col = f'{metric}_per_hundred'
        cols = list(self.entity_columns) + ['population', metric, rate_col]
        frame = self.frame[cols].sort_values(rate_col, ascending=False, kind='mergesort')
        return RateTable(frame, self.entity_columns, metrics=(metric,))


@dataclass(frozen=True, eq=False, repr=False)
class DeltaTable(Table):
    """
    Day-over-day new cases and deaths.

    Schema: <entity columns>, date, cases, deaths, population, new_cases, new_deaths
    """
    REQUIRED: ClassVar[Tuple[str, ...]] = ('date', 'cases', 'deaths', 'population',
                                           'new_cases', 'new_deaths')


@dataclass(frozen=True, eq=False, repr=False)
class VaccinationTable(Table):
    """
    Vaccination rate fields per state (daily, or reduced to one row per state).

    Schema: state, [date], <fields>
    """
    entity_columns: Tuple[str, ...] = ('state',)
    fields: Tuple[str, ...] = field(default_factory=tuple)

    def required_columns(self) -> Tuple[str, ...]:
        return super().required_columns() + tuple(self.fields)


@dataclass(frozen=True, eq=False, repr=False)
class DeathVaccinationTable(Table):
    """
    State death rates merged with best-known vaccination rates.

    Schema: state, population, deaths, deaths_per_hundred, <fields>
    """
    entity_columns: Tuple[str, ...] = ('state',)
    fields: Tuple[str, ...] = field(default_factory=tuple)

    REQUIRED: ClassVar[Tuple[str, ...]] = ('population', 'deaths', 'deaths_per_hundred')

    def required_columns(self) -> Tuple[str, ...]:
        return super().required_columns() + tuple(self.fields)


@dataclass(frozen=True, eq=False, repr=False)
class RegressionInput(Table):
    """
    Complete cases for the vaccination/death-rate regression.

    Schema: state, vaccination_rate, death_rate (no missing values)
    """
    entity_columns: Tuple[str, ...] = ('state',)

    REQUIRED: ClassVar[Tuple[str, ...]] = ('vaccination_rate', 'death_rate')

    def __post_init__(self):
        super().__post_init__()
        if self.frame[list(self.REQUIRED)].isna().any().any():
            raise ValueError("RegressionInput must not contain missing values")
