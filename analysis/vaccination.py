#!/usr/bin/env python3
"""
Vaccination Merge Module

Reduces the daily per-state vaccination series to the best rate each state
reached and joins it onto the state death rates, producing the input of the
vaccination/death-rate regression.
"""

import logging
from typing import Dict, Optional

import pandas as pd

from core.config import PipelineParameters
from models.tables import DeathVaccinationTable, RateTable, RegressionInput, VaccinationTable

logger = logging.getLogger(__name__)


def normalize_states(vax: VaccinationTable, aliases: Dict[str, str]) -> VaccinationTable:
    """Fold state label variants (e.g. 'New York State') into their canonical name"""
    df = vax.to_frame()
    renamed = df['state'].isin(list(aliases.keys())).sum()
    df['state'] = df['state'].replace(aliases)
    if renamed:
        logger.debug(f"Renamed {renamed} vaccination rows via state aliases")
    return VaccinationTable(df, fields=vax.fields)


def best_vaccination_rates(vax: VaccinationTable) -> VaccinationTable:
    """
    One row per state holding the max of each rate field over all dates.
    Missing values are ignored; a field missing on every date stays NaN.
    """
    fields = list(vax.fields)
    df = vax.to_frame().groupby('state', as_index=False)[fields].max()
    return VaccinationTable(df, fields=vax.fields)


def merge_with_deaths(death_rates: RateTable, vax_rates: VaccinationTable) -> DeathVaccinationTable:
    """
    Full outer join of state death rates and vaccination rates on state name.
    Rows without a positive population (vaccination-only jurisdictions such
    as federal agencies) are dropped.

    Schema: state, population, deaths, deaths_per_hundred, <vaccination fields>
    """
    deaths = death_rates.to_frame().rename(columns={'province_state': 'state'})
    deaths = deaths[['state', 'population', 'deaths', 'deaths_per_hundred']]

    merged = pd.merge(
        deaths,
        vax_rates.to_frame(),
        on='state',
        how='outer',
        validate='one_to_one'
    )
    unmatched = merged.loc[merged['population'].isna(), 'state'].tolist()
    if unmatched:
        logger.info(f"Vaccination rows without a state death rate: {unmatched}")

    merged = merged[merged['population'].fillna(0) > 0]
    merged = merged.sort_values('state').reset_index(drop=True)
    return DeathVaccinationTable(merged, fields=vax_rates.fields)


def regression_input(merged: DeathVaccinationTable, predictor: str) -> RegressionInput:
    """
    Rows with both the predictor and the death rate present.

    Schema: state, vaccination_rate, death_rate
    """
    if predictor not in merged.fields:
        raise ValueError(f"Unknown vaccination field: {predictor}")
    df = merged.to_frame()[['state', predictor, 'deaths_per_hundred']]
    complete = df.dropna(subset=[predictor, 'deaths_per_hundred'])
    if len(complete) < len(df):
        logger.info(f"Excluded {len(df) - len(complete)} states without {predictor} from regression input")
    complete = complete.rename(columns={predictor: 'vaccination_rate', 'deaths_per_hundred': 'death_rate'})
    return RegressionInput(complete)


class VaccinationMerger:
    """Runs normalize -> reduce -> merge -> regression input"""

    def __init__(self, params: Optional[PipelineParameters] = None):
        self.params = params or PipelineParameters()

    def merge(self, vax: VaccinationTable, death_rates: RateTable) -> DeathVaccinationTable:
        vax = normalize_states(vax, self.params.state_aliases)
        best = best_vaccination_rates(vax)
        merged = merge_with_deaths(death_rates, best)
        logger.info(f"Merged death and vaccination rates for {len(merged)} states/territories")
        return merged

    def regression_input(self, merged: DeathVaccinationTable) -> RegressionInput:
        return regression_input(merged, self.params.regression_predictor)
