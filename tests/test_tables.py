import numpy as np
import pandas as pd
import pytest

from models.tables import (
    GLOBAL_ENTITY, DeltaTable, JoinedTable, PopulationLookup, RateTable, RegressionInput,
)


def _joined_frame():
    return pd.DataFrame({
        'province_state': [''], 'country_region': ['Alpha'], 'date': [pd.Timestamp('2020-01-22')],
        'cases': [1.0], 'deaths': [0.0], 'population': [1000.0], 'combined_key': ['Alpha'],
    })


def test_schema_checked_on_construction():
    with pytest.raises(ValueError, match='combined_key'):
        JoinedTable(_joined_frame().drop(columns=['combined_key']), GLOBAL_ENTITY)
    with pytest.raises(ValueError):
        DeltaTable(_joined_frame(), GLOBAL_ENTITY)
    with pytest.raises(TypeError):
        JoinedTable(_joined_frame().to_dict(), GLOBAL_ENTITY)


def test_hands_out_copies():
    source = _joined_frame()
    table = JoinedTable(source, GLOBAL_ENTITY)
    source.loc[0, 'cases'] = 50
    frame = table.to_frame()
    frame.loc[0, 'cases'] = 99
    assert table.to_frame()['cases'].tolist() == [1.0]


def test_immutable():
    table = JoinedTable(_joined_frame(), GLOBAL_ENTITY)
    with pytest.raises(AttributeError):
        table.frame = pd.DataFrame()


def test_len_and_repr():
    table = JoinedTable(_joined_frame(), GLOBAL_ENTITY)
    assert len(table) == 1
    assert not table.empty
    assert repr(table).startswith('JoinedTable(rows=1')


def test_population_lookup_first_match():
    lookup = PopulationLookup(pd.DataFrame({
        'province_state': ['', '', 'Isle'], 'country_region': ['Beta', 'Beta', 'Beta'],
        'population': [5000.0, 7000.0, 500.0],
    }))
    resolved = lookup.resolved()
    assert resolved['population'].tolist() == [5000.0, 500.0]
    assert lookup.ambiguous_keys() == 1


def test_rate_table_requires_rate_columns():
    df = pd.DataFrame({'country_region': ['A'], 'population': [10.0], 'cases': [1.0], 'deaths': [0.0]})
    with pytest.raises(ValueError, match='per_hundred'):
        RateTable(df, ('country_region',))
    df['cases_per_hundred'] = 10.0
    table = RateTable(df, ('country_region',), metrics=('cases',))
    with pytest.raises(ValueError):
        table.for_metric('deaths')


def test_regression_input_rejects_missing_values():
    with pytest.raises(ValueError):
        RegressionInput(pd.DataFrame({'state': ['A'], 'vaccination_rate': [np.nan], 'death_rate': [0.1]}))


def test_every_table_reports_rows_and_columns():
    lookup = PopulationLookup(pd.DataFrame({'province_state': [''], 'country_region': ['A'],
                                            'population': [1.0]}))
    assert repr(lookup) == "PopulationLookup(rows=1, columns=['province_state', 'country_region', 'population'])"
    reg = RegressionInput(pd.DataFrame({'state': ['A'], 'vaccination_rate': [1.0], 'death_rate': [0.1]}))
    assert repr(reg).startswith('RegressionInput(rows=1, columns=')
