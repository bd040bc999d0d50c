#!/usr/bin/env python3
"""
Regression Module

Fits death rate on vaccination rate across US states. The fit sits behind
the `Regressor` interface; `OlsRegressor` is the statsmodels implementation.
"""

from dataclasses import dataclass, asdict
from typing import Dict, Optional, Protocol, Sequence

import numpy as np
import statsmodels.api as sm

from models.tables import RegressionInput


@dataclass(frozen=True)
class RegressionSummary:
    """Coefficients and fit statistics of y = intercept + slope * x"""
    intercept: float
    slope: float
    intercept_se: float
    slope_se: float
    intercept_t: float
    slope_t: float
    intercept_p: float
    slope_p: float
    residual_se: float
    r_squared: float
    adj_r_squared: float
    f_statistic: float
    f_pvalue: float
    n_obs: int
    df_resid: int
    x_name: str = 'x'
    y_name: str = 'y'

    def predict(self, x: Sequence[float]) -> np.ndarray:
        return self.intercept + self.slope * np.asarray(x, dtype=float)

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)

    def to_text(self) -> str:
        """Plain-text coefficient table in the usual lm/OLS summary layout"""
        lines = [
            f"Linear regression: {self.y_name} ~ {self.x_name}",
            "",
            f"{'':<14}{'Estimate':>12}{'Std. Error':>12}{'t value':>10}{'Pr(>|t|)':>12}",
            f"{'(Intercept)':<14}{self.intercept:>12.6f}{self.intercept_se:>12.6f}"
            f"{self.intercept_t:>10.3f}{self.intercept_p:>12.4g}",
            f"{self.x_name[:13]:<14}{self.slope:>12.6f}{self.slope_se:>12.6f}"
            f"{self.slope_t:>10.3f}{self.slope_p:>12.4g}",
            "",
            f"Residual standard error: {self.residual_se:.6f} on {self.df_resid} degrees of freedom",
            f"Multiple R-squared: {self.r_squared:.4f},  Adjusted R-squared: {self.adj_r_squared:.4f}",
            f"F-statistic: {self.f_statistic:.3f} on 1 and {self.df_resid} DF,  p-value: {self.f_pvalue:.4g}",
            f"Observations: {self.n_obs}",
        ]
        return "\n".join(lines)


class Regressor(Protocol):
    """Fits y = a + b*x on two equal-length numeric columns without missing values"""

    def fit(self, x: Sequence[float], y: Sequence[float],
            x_name: str = 'x', y_name: str = 'y') -> RegressionSummary:
        ...


def _check_inputs(x: np.ndarray, y: np.ndarray) -> None:
    if x.shape != y.shape:
        raise ValueError(f"x and y must have the same length, got {len(x)} and {len(y)}")
    if np.isnan(x).any() or np.isnan(y).any():
        raise ValueError("Regression inputs must not contain missing values")
    if len(x) < 3:
        raise ValueError(f"Need at least 3 observations, got {len(x)}")
    if np.ptp(x) == 0:
        raise ValueError("Predictor is constant; slope is not identifiable")


class OlsRegressor:
    """Ordinary least squares with an intercept (statsmodels)"""

    def fit(self, x: Sequence[float], y: Sequence[float],
            x_name: str = 'x', y_name: str = 'y') -> RegressionSummary:
        x = np.asarray(x, dtype=float).ravel()
        y = np.asarray(y, dtype=float).ravel()
        _check_inputs(x, y)

        X = sm.add_constant(x, has_constant='add')
        model = sm.OLS(y, X).fit()

        return RegressionSummary(
            intercept=float(model.params[0]),
            slope=float(model.params[1]),
            intercept_se=float(model.bse[0]),
            slope_se=float(model.bse[1]),
            intercept_t=float(model.tvalues[0]),
            slope_t=float(model.tvalues[1]),
            intercept_p=float(model.pvalues[0]),
            slope_p=float(model.pvalues[1]),
            residual_se=float(np.sqrt(model.scale)),
            r_squared=float(model.rsquared),
            adj_r_squared=float(model.rsquared_adj),
            f_statistic=float(model.fvalue),
            f_pvalue=float(model.f_pvalue),
            n_obs=int(model.nobs),
            df_resid=int(model.df_resid),
            x_name=x_name,
            y_name=y_name,
        )


def fit_death_rate_model(data: RegressionInput,
                         regressor: Optional[Regressor] = None) -> RegressionSummary:
    """Regress death_rate on vaccination_rate"""
    regressor = regressor or OlsRegressor()
    df = data.to_frame()
    return regressor.fit(df['vaccination_rate'], df['death_rate'],
                         x_name='vaccination_rate', y_name='death_rate')
