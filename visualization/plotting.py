#!/usr/bin/env python3
"""
Chart rendering for the report.

A chart is described by a `ChartSpec` and drawn from a plain DataFrame by
`ReportPlotter.render`, so the pipeline never depends on matplotlib.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple, Union

import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
import pandas as pd
import seaborn as sns

from analysis.regression import RegressionSummary
from core.config import PlotParameters
from models.tables import DeathVaccinationTable, DeltaTable, RateTable

logger = logging.getLogger(__name__)

CHART_KINDS = ('bar', 'line', 'scatter')


@dataclass(frozen=True)
class ChartSpec:
    """What to draw: chart kind, columns, title and output file stem"""
    kind: str
    x: str
    y: str
    title: str
    filename: str
    hue: Optional[str] = None
    top_n: Optional[int] = None
    xlabel: Optional[str] = None
    ylabel: Optional[str] = None
    fit_line: Optional[Tuple[float, float]] = None  # (intercept, slope)

    def __post_init__(self):
        if self.kind not in CHART_KINDS:
            raise ValueError(f"Unknown chart kind {self.kind}, expected one of {CHART_KINDS}")


class ReportPlotter:
    """Draws ChartSpecs into the figures directory"""

    def __init__(self, figures_dir: Union[str, Path], dpi: int = 300, file_format: str = 'pdf',
                 figsize: Tuple[int, int] = (12, 8)):
        """
        Args:
            figures_dir: Directory for figures
            dpi: Resolution of saved figures
            file_format: pdf, png or svg
            figsize: Default figure size
        """
        self.figures_dir = Path(figures_dir)
        self.figures_dir.mkdir(parents=True, exist_ok=True)
        self.dpi = dpi
        self.file_format = file_format
        self.figsize = figsize
        plt.style.use('default')
        sns.set_palette("husl")

    def render(self, data: pd.DataFrame, spec: ChartSpec) -> Path:
        """Draw one chart and return the saved file path"""
        missing = [col for col in (spec.x, spec.y, spec.hue) if col and col not in data.columns]
        if missing:
            raise ValueError(f"Chart {spec.filename} needs missing columns: {missing}")

        fig, ax = plt.subplots(figsize=self.figsize)
        try:
            if spec.kind == 'bar':
                self._bar(ax, data, spec)
            elif spec.kind == 'line':
                self._line(ax, data, spec)
            else:
                self._scatter(ax, data, spec)

            xlabel = spec.xlabel or spec.x.replace('_', ' ').title()
            ylabel = spec.ylabel or spec.y.replace('_', ' ').title()
            if spec.kind == 'bar':
                # Horizontal bars: values run along x, labels along y
                xlabel, ylabel = ylabel, xlabel
            ax.set_xlabel(xlabel)
            ax.set_ylabel(ylabel)
            ax.set_title(spec.title)
            ax.grid(True, alpha=0.3)
            plt.tight_layout()

            path = self.figures_dir / f"{spec.filename}.{self.file_format}"
            plt.savefig(path, dpi=self.dpi, bbox_inches='tight')
        finally:
            plt.close(fig)

        logger.info(f"Chart saved to {path}")
        return path

    @staticmethod
    def _bar(ax, data: pd.DataFrame, spec: ChartSpec) -> None:
        ranked = data.sort_values(spec.y, ascending=False, kind='mergesort')
        if spec.top_n:
            ranked = ranked.head(spec.top_n)
        # Horizontal bars, highest at the top
        ax.barh(ranked[spec.x].astype(str)[::-1], ranked[spec.y][::-1], alpha=0.8)

    @staticmethod
    def _line(ax, data: pd.DataFrame, spec: ChartSpec) -> None:
        if spec.hue:
            for label, group in data.groupby(spec.hue, sort=True):
                group = group.sort_values(spec.x)
                ax.plot(group[spec.x], group[spec.y], label=str(label), linewidth=1.5, alpha=0.8)
            ax.legend()
        else:
            ordered = data.sort_values(spec.x)
            ax.plot(ordered[spec.x], ordered[spec.y], linewidth=1.5)
        ax.figure.autofmt_xdate()

    @staticmethod
    def _scatter(ax, data: pd.DataFrame, spec: ChartSpec) -> None:
        ax.scatter(data[spec.x], data[spec.y], alpha=0.7)
        if spec.fit_line is not None and not data.empty:
            intercept, slope = spec.fit_line
            xs = pd.Series([data[spec.x].min(), data[spec.x].max()])
            ax.plot(xs, intercept + slope * xs, 'r-', linewidth=2, label='Linear fit')
            ax.legend()


def create_report_charts(plotter: ReportPlotter,
                         global_rates: RateTable,
                         us_rates: RateTable,
                         deltas: DeltaTable,
                         deaths_vaccination: DeathVaccinationTable,
                         regression: Optional[RegressionSummary],
                         params: Optional[PlotParameters] = None,
                         predictor: str = 'people_fully_vaccinated_per_hundred') -> List[Path]:
    """
    Create the report charts.

    Saves the following outputs to the figures directory:
        "global_deaths_per_hundred"
        "us_deaths_per_hundred"
        "us_new_cases" and "us_new_deaths" (highlighted states)
        "vaccination_vs_deaths"
    """
    params = params or PlotParameters()
    logger.info("Creating report charts...")
    paths = []

    paths.append(plotter.render(global_rates.to_frame(), ChartSpec(
        kind='bar', x='country_region', y='deaths_per_hundred', top_n=params.top_n,
        title=f'Top {params.top_n} Countries by Deaths per Hundred',
        xlabel='Country', ylabel='Deaths per hundred', filename='global_deaths_per_hundred'
    )))

    paths.append(plotter.render(us_rates.to_frame(), ChartSpec(
        kind='bar', x='province_state', y='deaths_per_hundred', top_n=params.top_n,
        title=f'Top {params.top_n} US States by Deaths per Hundred',
        xlabel='State', ylabel='Deaths per hundred', filename='us_deaths_per_hundred'
    )))

    daily = deltas.to_frame()
    daily = daily[daily['province_state'].isin(params.highlight_states)]
    if daily.empty:
        logger.warning(f"No daily data for highlighted states {params.highlight_states}")
    else:
        for metric, label in [('new_cases', 'New cases'), ('new_deaths', 'New deaths')]:
            paths.append(plotter.render(daily, ChartSpec(
                kind='line', x='date', y=metric, hue='province_state',
                title=f'Daily {label} by State', xlabel='Date', ylabel=label,
                filename=f'us_{metric}'
            )))

    scatter = deaths_vaccination.to_frame().dropna(subset=[predictor, 'deaths_per_hundred'])
    fit = (regression.intercept, regression.slope) if regression is not None else None
    paths.append(plotter.render(scatter, ChartSpec(
        kind='scatter', x=predictor, y='deaths_per_hundred', fit_line=fit,
        title='Deaths per Hundred vs Vaccination Rate by State',
        xlabel=predictor.replace('_', ' ').capitalize(), ylabel='Deaths per hundred',
        filename='vaccination_vs_deaths'
    )))

    logger.info(f"Report charts saved to {plotter.figures_dir}")
    return paths
