"""
# Results Management

This module provides data structures for holding the outputs of the local
and global sensitivity analyses. Results live in memory only; they are plain
pandas DataFrames and numpy arrays ready for reporting or plotting.

## Classes

- `SobolResults`: Sobol' index table, sample design and model outputs
- `LocalSensitivityResults`: Normalized sensitivity coefficients over time

## Example Usage

```python
results = SensitivityAnalysis(model, config).run()

results.indices            # long table of S1/ST estimates
results.total_order()      # ST estimates, one row per variable/time/parameter
results.noise_floor()      # indices of the dummy parameter
results.influential("Ia")  # parameters above the noise floor for Ia
```
"""

from dataclasses import dataclass, field
import pandas as pd
import numpy as np


DUMMY = "dummy"
"""Parameter name under which the noise-floor indices are reported."""

INDEX_COLUMNS = ["variable", "time", "parameter", "index", "estimate", "conf", "low", "high"]
"""Columns of a Sobol' index table."""


@dataclass
class SobolResults:
    """
    Outputs of a global Sobol' sensitivity analysis.

    Attributes:
        indices (pd.DataFrame): Long table with `INDEX_COLUMNS` and an
            `above_noise` flag. `index` is "S1", "ST" (and "S2" when
            second-order indices were requested). The dummy parameter's rows
            carry `parameter == DUMMY`.
        design (pd.DataFrame): Transformed parameter samples, one row per
            model evaluation, in quasi-random design order.
        outputs (np.ndarray): Model outputs with shape (rows, T, variables).
            Rows of dropped groups are NaN.
        times (np.ndarray): Output times.
        variables (list[str]): Output variable names.
        dropped (list[int]): Base-sample groups excluded after failures.
    """
    indices: pd.DataFrame
    design: pd.DataFrame
    outputs: np.ndarray
    times: np.ndarray
    variables: list[str]
    dropped: list[int] = field(default_factory=list)

    def _select(self, index: str, include_dummy: bool = False) -> pd.DataFrame:
        df = self.indices[self.indices["index"] == index]
        if not include_dummy:
            df = df[df["parameter"] != DUMMY]
        return df.reset_index(drop=True)

    def first_order(self) -> pd.DataFrame:
        """First-order (S1) rows of the index table."""
        return self._select("S1")

    def total_order(self) -> pd.DataFrame:
        """Total-order (ST) rows of the index table."""
        return self._select("ST")

    def second_order(self) -> pd.DataFrame:
        """Second-order (S2) rows; empty unless requested."""
        return self._select("S2")

    def noise_floor(self) -> pd.DataFrame:
        """Index rows of the dummy parameter."""
        df = self.indices[self.indices["parameter"] == DUMMY]
        return df.reset_index(drop=True)

    def influential(self, variable: str, time: float = None) -> list[str]:
        """
        Parameters whose total-order index exceeds the noise floor.

        Args:
            variable (str): Output variable name.
            time (float, optional): Output time. If None, a parameter counts
                as influential if it is above the noise floor at any time.

        Returns:
            list[str]: Parameter names in design order.
        """
        df = self.total_order()
        df = df[df["variable"] == variable]
        if time is not None:
            df = df[np.isclose(df["time"], time)]
        above = df.groupby("parameter", sort=False)["above_noise"].any()
        return [name for name, flag in above.items() if flag]

    def pivot(self, index: str = "ST", variable: str = None) -> pd.DataFrame:
        """
        Wide view of one index type: rows are (variable, time), columns parameters.

        Args:
            index (str, optional): "S1" or "ST". Defaults to "ST".
            variable (str, optional): Restrict to one output variable.
        """
        df = self._select(index, include_dummy=True)
        if variable is not None:
            df = df[df["variable"] == variable]
        return df.pivot_table(
            index=["variable", "time"],
            columns="parameter",
            values="estimate",
            sort=False,
        )


@dataclass
class LocalSensitivityResults:
    """
    Outputs of a local (finite-difference) sensitivity analysis.

    Attributes:
        table (pd.DataFrame): Long table with columns "time", "variable",
            "parameter" and "sensitivity".
        baseline (pd.DataFrame): Trajectory of the unperturbed parameters.
    """
    table: pd.DataFrame
    baseline: pd.DataFrame

    def summary(self) -> pd.DataFrame:
        """
        Summary of the coefficients over time per (parameter, variable).

        Returns:
            pd.DataFrame: Columns "parameter", "variable", "L1" (mean absolute
                value), "L2" (root mean square), "mean", "min" and "max".
        """
        grouped = self.table.groupby(["parameter", "variable"], sort=False)["sensitivity"]
        summary = grouped.agg(
            L1=lambda s: np.mean(np.abs(s)),
            L2=lambda s: np.sqrt(np.mean(s ** 2)),
            mean="mean",
            min="min",
            max="max",
        )
        return summary.reset_index()

    def wide(self, variable: str) -> pd.DataFrame:
        """Coefficients of `variable` with one column per parameter, indexed by time."""
        df = self.table[self.table["variable"] == variable]
        return df.pivot(index="time", columns="parameter", values="sensitivity")
