"""
Shared fixtures: a miniature copy of the CSSE/OWID inputs.

Global (dates 1/22/20 .. 1/24/20):
    Alpha           cases 1, 2, 3     deaths 0, 1, 1   population 1000 (a second 9999 row is ignored)
    Beta            cases 10, 20, 30  deaths 1, 2, 4   population 5000
    Isle, Beta      cases 1, 1, 2     deaths 0, 0, 1   population 500
    Gamma           cases 5, 5, 5     deaths 0, 0, 0   not in the lookup

US counties:
    A1, Stateone    cases 1, 3, 6     deaths 0, 1, 1   population 600
    A2, Stateone    cases 0, 2, 2     deaths 0, 0, 1   population 400
    B1, Statetwo    cases 5, 6, 7     deaths 1, 1, 2   population 0
    C1, New York    cases 10, 8, 20   deaths 1, 2, 3   population 1000
    D1, Statethree  cases 0, 4, 10    deaths 0, 1, 5   population 2000
"""

import numpy as np
import pandas as pd
import pytest

from analysis.data_fetch import FrameFetcher
from core.config import DEFAULT_VACCINATION_FIELDS

DATES = ['1/22/20', '1/23/20', '1/24/20']


def global_wide(rows, dates=DATES):
    """rows: (province or None, country, [values])"""
    records = []
    for province, country, values in rows:
        record = {'Province/State': province if province else np.nan,
                  'Country/Region': country, 'Lat': 0.0, 'Long': 0.0}
        record.update(dict(zip(dates, values)))
        records.append(record)
    return pd.DataFrame(records, columns=['Province/State', 'Country/Region', 'Lat', 'Long'] + list(dates))


def us_wide(rows, dates=DATES, with_population=False):
    """rows: (county, state, population, [values])"""
    id_cols = ['UID', 'iso2', 'iso3', 'code3', 'FIPS', 'Admin2', 'Province_State',
               'Country_Region', 'Lat', 'Long_', 'Combined_Key']
    if with_population:
        id_cols = id_cols + ['Population']
    records = []
    for i, (county, state, population, values) in enumerate(rows):
        record = {'UID': 84000000 + i, 'iso2': 'US', 'iso3': 'USA', 'code3': 840, 'FIPS': 1000.0 + i,
                  'Admin2': county, 'Province_State': state, 'Country_Region': 'US',
                  'Lat': 0.0, 'Long_': 0.0, 'Combined_Key': f'{county}, {state}, US'}
        if with_population:
            record['Population'] = population
        record.update(dict(zip(dates, values)))
        records.append(record)
    return pd.DataFrame(records, columns=id_cols + list(dates))


@pytest.fixture
def global_cases_wide():
    return global_wide([
        (None, 'Alpha', [1, 2, 3]),
        (None, 'Beta', [10, 20, 30]),
        ('Isle', 'Beta', [1, 1, 2]),
        (None, 'Gamma', [5, 5, 5]),
    ])


@pytest.fixture
def global_deaths_wide():
    return global_wide([
        (None, 'Alpha', [0, 1, 1]),
        (None, 'Beta', [1, 2, 4]),
        ('Isle', 'Beta', [0, 0, 1]),
        (None, 'Gamma', [0, 0, 0]),
    ])


US_COUNTIES = [
    ('A1', 'Stateone', 600, [1, 3, 6], [0, 1, 1]),
    ('A2', 'Stateone', 400, [0, 2, 2], [0, 0, 1]),
    ('B1', 'Statetwo', 0, [5, 6, 7], [1, 1, 2]),
    ('C1', 'New York', 1000, [10, 8, 20], [1, 2, 3]),
    ('D1', 'Statethree', 2000, [0, 4, 10], [0, 1, 5]),
]


@pytest.fixture
def us_cases_wide():
    return us_wide([(c, s, p, cases) for c, s, p, cases, _ in US_COUNTIES])


@pytest.fixture
def us_deaths_wide():
    return us_wide([(c, s, p, deaths) for c, s, p, _, deaths in US_COUNTIES], with_population=True)


@pytest.fixture
def lookup_frame():
    rows = [
        ('', 'Alpha', 1000),
        ('', 'Alpha', 9999),
        ('', 'Beta', 5000),
        ('Isle', 'Beta', 500),
        ('', 'US', 329466283),
    ]
    return pd.DataFrame({
        'UID': range(len(rows)),
        'iso2': 'XX', 'iso3': 'XXX', 'code3': 0, 'FIPS': np.nan, 'Admin2': np.nan,
        'Province_State': [r[0] or np.nan for r in rows],
        'Country_Region': [r[1] for r in rows],
        'Lat': 0.0, 'Long_': 0.0,
        'Combined_Key': [r[1] for r in rows],
        'Population': [r[2] for r in rows],
    })


@pytest.fixture
def vaccination_frame():
    nan = np.nan
    rows = [
        # date, location, fully, total, people, distributed, boosters
        ('2021-01-01', 'Stateone', 10.0, 20.0, 15.0, 30.0, nan),
        ('2021-01-02', 'Stateone', 12.0, nan, 16.0, 31.0, 1.0),
        ('2021-01-01', 'New York State', 40.0, 80.0, 50.0, 90.0, nan),
        ('2021-01-02', 'New York', 45.0, 85.0, 55.0, 95.0, 2.0),
        ('2021-01-02', 'Statethree', 30.0, 60.0, 35.0, 70.0, 0.5),
        ('2021-01-01', 'Bureau of Prisons', 50.0, 60.0, 55.0, 70.0, nan),
        ('2021-01-01', 'Statetwo', nan, 10.0, nan, 20.0, nan),
    ]
    df = pd.DataFrame(rows, columns=['date', 'location'] + DEFAULT_VACCINATION_FIELDS)
    df['daily_vaccinations'] = 100.0
    return df


@pytest.fixture
def frames(global_cases_wide, global_deaths_wide, us_cases_wide, us_deaths_wide,
           lookup_frame, vaccination_frame):
    return {
        'global_cases': global_cases_wide,
        'global_deaths': global_deaths_wide,
        'us_cases': us_cases_wide,
        'us_deaths': us_deaths_wide,
        'population_lookup': lookup_frame,
        'us_vaccinations': vaccination_frame,
    }


@pytest.fixture
def fetcher(frames):
    return FrameFetcher(frames)
