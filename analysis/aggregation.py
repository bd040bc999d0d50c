#!/usr/bin/env python3
"""
Aggregation Module

Collapses the hierarchical geography into the units the report compares:
US counties into states (per date), and global provinces into countries
(latest cumulative counts only), and computes per-hundred rates.

Global countries need two passes. Some countries report an aggregate row
without a province next to separate province rows (overseas territories,
for example). Pass 1 reduces each (country, population) group to its latest
cumulative values; pass 2 sums those groups per country. Each population
figure therefore enters the country total exactly once.
"""

import logging
from typing import Dict

import pandas as pd

from models.tables import COUNT_COLUMNS, US_STATE_ENTITY, JoinedTable, RateTable
from analysis.data_processing import build_combined_keys

logger = logging.getLogger(__name__)


def add_rates(df: pd.DataFrame, metrics=COUNT_COLUMNS) -> pd.DataFrame:
    """Add <metric>_per_hundred = <metric> / population * 100 for each metric"""
    df = df.copy()
    for metric in metrics:
        df[f'{metric}_per_hundred'] = df[metric] / df['population'] * 100
    return df


def collapse_counties(us: JoinedTable) -> JoinedTable:
    """
    Sum US county rows into one row per state and date.

    Cases, deaths and population are summed; a county missing a count
    contributes nothing to that sum.

    Schema: province_state, country_region, date, cases, deaths, population, combined_key
    """
    keys = list(US_STATE_ENTITY) + ['date']
    state_df = (
        us.to_frame()
        .groupby(keys, as_index=False)[['cases', 'deaths', 'population']]
        .sum()
    )
    state_df['combined_key'] = build_combined_keys(state_df, list(US_STATE_ENTITY))
    logger.info(f"Collapsed {len(us)} county rows into {len(state_df)} state rows "
                f"({state_df['province_state'].nunique()} states)")
    return JoinedTable(state_df, US_STATE_ENTITY)


def first_pass(global_joined: JoinedTable) -> pd.DataFrame:
    """
    Pass 1: latest cumulative counts per (country, population) group.

    The group key keeps one row per distinct population figure within a
    country, i.e. per province. Grouping on population also makes the
    population of the group its max.

    Returns:
        DataFrame: country_region, population, cases, deaths
    """
    return (
        global_joined.to_frame()
        .groupby(['country_region', 'population'], as_index=False)[list(COUNT_COLUMNS)]
        .max()
    )


def second_pass(first: pd.DataFrame) -> pd.DataFrame:
    """
    Pass 2: sum the pass-1 groups of each country, then take the max over
    any duplicate country rows that remain. A metric missing from every group
    of a country stays NaN. Countries with population <= 0 are dropped.

    Returns:
        DataFrame: country_region, population, cases, deaths
    """
    cols = ['population'] + list(COUNT_COLUMNS)
    summed = first.groupby('country_region', as_index=False)[cols].sum(min_count=1)
    country_df = summed.groupby('country_region', as_index=False)[cols].max()
    return country_df[country_df['population'] > 0]


def global_rates(global_joined: JoinedTable) -> RateTable:
    """
    Latest cases and deaths per hundred population by country.

    Schema: country_region, population, cases, cases_per_hundred, deaths, deaths_per_hundred
    """
    first = first_pass(global_joined)
    country_df = add_rates(second_pass(first))
    dropped = first['country_region'].nunique() - len(country_df)
    logger.info(f"Global rates: {len(country_df)} countries ({dropped} without population dropped)")
    return RateTable(country_df, ('country_region',))


def us_rates(us_states: JoinedTable) -> RateTable:
    """
    Latest cases and deaths per hundred population by US state.

    Groups by (state, population). A state whose population differs between
    dates keeps its largest-population group only.

    Schema: province_state, population, cases, cases_per_hundred, deaths, deaths_per_hundred
    """
    state_df = (
        us_states.to_frame()
        .groupby(['province_state', 'population'], as_index=False)[list(COUNT_COLUMNS)]
        .max()
    )
    if state_df['province_state'].duplicated().any():
        logger.debug("Some states report more than one population figure; keeping the largest")
        state_df = (
            state_df.sort_values(['province_state', 'population'], ascending=[True, False], kind='mergesort')
            .drop_duplicates('province_state', keep='first')
        )
    state_df = add_rates(state_df[state_df['population'] > 0])
    logger.info(f"US rates: {len(state_df)} states/territories")
    return RateTable(state_df, ('province_state',))


def split_rates(aggregated: RateTable) -> Dict[str, RateTable]:
    """One single-metric table per metric, each sorted by its rate (highest first, ties stable)"""
    return {metric: aggregated.for_metric(metric) for metric in aggregated.metrics}
