#!/usr/bin/env python3
"""
Main Execution Script for the COVID-19 Time-Series Report

Runs the whole batch in one pass:

1. load the CSSE time series, population lookup and vaccination series
2. reshape and join them into tidy per-entity-per-day tables
3. derive per-hundred rates and daily new cases/deaths
4. merge vaccination rates onto state death rates and fit the regression
5. write the derived tables, the regression summary and the charts
"""

import argparse
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Union

from analysis.aggregation import collapse_counties, global_rates, split_rates, us_rates
from analysis.data_fetch import Fetcher, HttpCsvFetcher, LocalCsvFetcher
from analysis.data_processing import Joiner, RawLoader, Reshaper
from analysis.metrics import daily_deltas
from analysis.regression import Regressor, RegressionSummary, fit_death_rate_model
from analysis.vaccination import VaccinationMerger
from core.config import DeltaFilterPolicy, ReportConfig
from core.paths import DATA_DIR, FIGURES_DIR, OUTPUT_DIR, ensure_directories_exist
from models.errors import ReportError
from models.tables import (
    DeathVaccinationTable, DeltaTable, JoinedTable, RateTable, RegressionInput, Table,
)
from visualization.plotting import ReportPlotter, create_report_charts

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReportResult:
    """Every table the report produces, plus the regression fit"""
    global_joined: JoinedTable
    us_states: JoinedTable
    global_cases_per_hundred: RateTable
    global_deaths_per_hundred: RateTable
    us_cases_per_hundred: RateTable
    us_deaths_per_hundred: RateTable
    us_daily_new: DeltaTable
    us_deaths_vaccination: DeathVaccinationTable
    regression_input: RegressionInput
    regression: Optional[RegressionSummary]

    def output_tables(self) -> Dict[str, Table]:
        """The six derived tables keyed by output file stem"""
        return {
            'global_cases_per_hundred': self.global_cases_per_hundred,
            'global_deaths_per_hundred': self.global_deaths_per_hundred,
            'us_cases_per_hundred': self.us_cases_per_hundred,
            'us_deaths_per_hundred': self.us_deaths_per_hundred,
            'us_daily_new': self.us_daily_new,
            'us_deaths_vaccination': self.us_deaths_vaccination,
        }


class CovidReport:
    """Coordinates the pipeline stages and writes the outputs"""

    def __init__(self, fetcher: Fetcher, config: Optional[ReportConfig] = None,
                 output_dir: Union[str, Path] = OUTPUT_DIR,
                 figures_dir: Union[str, Path] = FIGURES_DIR,
                 regressor: Optional[Regressor] = None):
        """
        Initialize the report

        Args:
            fetcher: Source of the raw tables
            config: Report configuration (defaults if omitted)
            output_dir: Directory for derived tables and regression summary
            figures_dir: Directory for charts
            regressor: Regression capability (statsmodels OLS if omitted)
        """
        self.fetcher = fetcher
        self.config = config or ReportConfig()
        self.output_dir = Path(output_dir)
        self.figures_dir = Path(figures_dir)
        self.regressor = regressor

    def build(self) -> ReportResult:
        """Run every pipeline stage in order and return the results without writing anything"""
        params = self.config.pipeline
        loader = RawLoader(self.fetcher, params)
        reshaper = Reshaper(params.date_format)
        joiner = Joiner()

        # Stage 1-3: global scope
        logger.info("Tidying global time series...")
        global_joined = joiner.join_global(
            reshaper.global_series(loader.load_global('cases'), 'cases'),
            reshaper.global_series(loader.load_global('deaths'), 'deaths'),
            loader.load_population_lookup()
        )

        # Stage 1-3: US scope
        logger.info("Tidying US time series...")
        us_joined = joiner.join_us(
            reshaper.us_series(loader.load_us('cases'), 'cases'),
            reshaper.us_series(loader.load_us('deaths'), 'deaths')
        )

        # Stage 4: aggregation and per-hundred rates
        us_states = collapse_counties(us_joined)
        global_split = split_rates(global_rates(global_joined))
        us_split = split_rates(us_rates(us_states))

        # Stage 5: daily deltas
        deltas = daily_deltas(us_states, params.delta_policy)

        # Stage 6: vaccination merge
        merger = VaccinationMerger(params)
        merged = merger.merge(loader.load_vaccinations(), us_split['deaths'])
        reg_input = merger.regression_input(merged)

        regression = None
        if len(reg_input) >= 3:
            try:
                regression = fit_death_rate_model(reg_input, self.regressor)
            except ValueError as e:
                logger.warning(f"Regression not fitted: {e}")
        else:
            logger.warning(f"Only {len(reg_input)} states with vaccination data; regression skipped")

        return ReportResult(
            global_joined=global_joined,
            us_states=us_states,
            global_cases_per_hundred=global_split['cases'],
            global_deaths_per_hundred=global_split['deaths'],
            us_cases_per_hundred=us_split['cases'],
            us_deaths_per_hundred=us_split['deaths'],
            us_daily_new=deltas,
            us_deaths_vaccination=merged,
            regression_input=reg_input,
            regression=regression,
        )

    def _export_results(self, table: Table, filename: str) -> Path:
        """Export a table to CSV"""
        path = self.output_dir / filename
        table.to_frame().to_csv(path, index=False)
        logger.info(f"Results exported to {path}")
        return path

    def write(self, result: ReportResult, plot: bool = True) -> List[Path]:
        """Write tables, regression summary and (optionally) charts"""
        ensure_directories_exist(self.output_dir, self.figures_dir)
        written = [self._export_results(table, f"{stem}.csv")
                   for stem, table in result.output_tables().items()]

        summary_path = self.output_dir / "regression_summary.txt"
        if result.regression is not None:
            summary_path.write_text(result.regression.to_text() + "\n")
        else:
            summary_path.write_text("Regression not fitted: fewer than 3 complete observations "
                                    "or a constant predictor\n")
        written.append(summary_path)

        if plot:
            plot_params = self.config.plot
            plotter = ReportPlotter(self.figures_dir, dpi=plot_params.dpi,
                                    file_format=plot_params.file_format)
            written += create_report_charts(
                plotter,
                result.global_deaths_per_hundred,
                result.us_deaths_per_hundred,
                result.us_daily_new,
                result.us_deaths_vaccination,
                result.regression,
                plot_params,
                predictor=self.config.pipeline.regression_predictor,
            )
        return written

    def run(self, plot: bool = True) -> ReportResult:
        """Build the report and write every output"""
        result = self.build()
        self.write(result, plot=plot)
        return result


def _print_summary(result: ReportResult) -> None:
    print("\n" + "=" * 70)
    print("COVID-19 REPORT COMPLETED")
    print("=" * 70)
    for stem, table in result.output_tables().items():
        print(f"   • {stem}: {len(table):,} rows")

    top = result.global_deaths_per_hundred.to_frame().head(5)
    if not top.empty:
        print("\nHighest deaths per hundred (countries):")
        for _, row in top.iterrows():
            print(f"   • {row['country_region']}: {row['deaths_per_hundred']:.3f}")

    if result.regression is not None:
        print("\n" + result.regression.to_text())


def main(argv: Optional[List[str]] = None) -> int:
    """Main function"""
    parser = argparse.ArgumentParser(description="COVID-19 time-series report")
    parser.add_argument("--source", choices=['http', 'local'], default='http',
                        help="Download the inputs or read them from --data-dir")
    parser.add_argument("--data-dir", default=str(DATA_DIR), help="Directory of local/cached input CSVs")
    parser.add_argument("--output-dir", default=str(OUTPUT_DIR), help="Directory for derived tables")
    parser.add_argument("--figures-dir", default=str(FIGURES_DIR), help="Directory for charts")
    parser.add_argument("--config", help="JSON file with configuration overrides")
    parser.add_argument("--delta-policy", choices=[p.value for p in DeltaFilterPolicy],
                        help="Negative daily delta filter (overrides config)")
    parser.add_argument("--cache", action="store_true", help="Save downloaded inputs to --data-dir")
    parser.add_argument("--no-plots", action="store_true", help="Skip chart rendering")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")

    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format='%(asctime)s - %(levelname)s - %(message)s')

    config = ReportConfig.from_json(args.config) if args.config else ReportConfig()
    if args.delta_policy:
        pipeline = config.pipeline.model_copy(update={'delta_policy': DeltaFilterPolicy(args.delta_policy)})
        config = config.model_copy(update={'pipeline': pipeline})

    if args.source == 'local':
        fetcher = LocalCsvFetcher(args.data_dir, config.sources)
    else:
        fetcher = HttpCsvFetcher(config.sources, config.fetch,
                                 cache_dir=args.data_dir if args.cache else None)

    report = CovidReport(fetcher, config, output_dir=args.output_dir, figures_dir=args.figures_dir)
    try:
        result = report.run(plot=not args.no_plots)
    except ReportError as e:
        logger.error(f"Report aborted: {e}")
        return 1

    _print_summary(result)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
