#!/usr/bin/env python3
"""
Daily Delta Module

Derives new cases and new deaths per day from cumulative counts.

Upstream corrections show up as cumulative counts that drop from one day to
the next. Those negative deltas are removed, not clamped to zero.
"""

import logging
from typing import Union

import pandas as pd

from core.config import DeltaFilterPolicy
from models.tables import JoinedTable, DeltaTable

logger = logging.getLogger(__name__)


def add_deltas(df: pd.DataFrame, keys, columns=('cases', 'deaths')) -> pd.DataFrame:
    """
    Add new_<column> = value minus the previous date's value of the same entity.

    The first date of each entity gets NaN.
    """
    df = df.sort_values(list(keys) + ['date'], kind='mergesort').reset_index(drop=True)
    grouped = df.groupby(list(keys), sort=False)
    for col in columns:
        df[f'new_{col}'] = grouped[col].diff()
    return df


def daily_deltas(table: JoinedTable,
                 policy: Union[DeltaFilterPolicy, str] = DeltaFilterPolicy.JOINT) -> DeltaTable:
    """
    Compute daily new cases and deaths per entity.

    Rows are removed when:
        - it is the first date of the entity (no previous value)
        - a delta is negative (see `policy`)
        - population <= 0 (after the deltas are computed)

    Args:
        table: Joined cumulative counts (state level for the US report)
        policy: JOINT drops a row if either delta is missing or negative.
            INDEPENDENT filters each metric on its own; a row survives if one
            metric is valid and the failed metric is set to NaN.

    Returns:
        DeltaTable: <entity columns>, date, cases, deaths, population, new_cases, new_deaths
    """
    policy = DeltaFilterPolicy(policy)
    keys = list(table.entity_columns)
    df = add_deltas(table.to_frame(), keys)

    cases_ok = df['new_cases'].notna() & (df['new_cases'] >= 0)
    deaths_ok = df['new_deaths'].notna() & (df['new_deaths'] >= 0)
    negative = ((df['new_cases'] < 0) | (df['new_deaths'] < 0)).sum()

    if policy == DeltaFilterPolicy.JOINT:
        df = df[cases_ok & deaths_ok].copy()
    else:
        df.loc[~cases_ok, 'new_cases'] = float('nan')
        df.loc[~deaths_ok, 'new_deaths'] = float('nan')
        df = df[cases_ok | deaths_ok].copy()

    df = df[df['population'] > 0]
    logger.debug(f"Dropped/masked {negative} negative daily deltas ({policy.value} policy)")

    cols = keys + ['date', 'cases', 'deaths', 'population', 'new_cases', 'new_deaths']
    logger.info(f"Daily deltas: {len(df)} rows for {df[keys].drop_duplicates().shape[0]} entities")
    return DeltaTable(df[cols], tuple(keys))
