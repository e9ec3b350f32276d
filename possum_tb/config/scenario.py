"""
# Scenario Configuration

This module provides the scenario configuration used to set up model runs:
which canonical parameter set to use, in which time unit, from which initial
state, and with which solver settings. It also defines the standard output
time grids.

## Classes

- `ScenarioConfig`: Scenario, time unit, initial state and solver settings

## Functions

- `display_times`: 0 to 20 years in 30-day steps
- `sensitivity_times`: Yearly points from 0 to 7 years

## Example Usage

```python
from possum_tb.config.scenario import ScenarioConfig

config = ScenarioConfig(scenario="base", time_unit="daily")
params = config.params()
times = config.times("display")
run_kwargs = config.run_kwargs(times)
```
"""

from dataclasses import dataclass, asdict, field
from typing import Literal
import numpy as np
import json
import logging

from .params import ParameterSet, get_scenario, DAYS_PER_YEAR, SCENARIOS, UNITS
from ..errors import ConfigurationError


DEFAULT_INITIAL_STATE = {"Sj": 20.0, "Ej": 0.0, "Ij": 0.0, "Sa": 30.0, "Ea": 0.0, "Ia": 1.0}

TIME_KEYS = ("times", "t0")
"""Run keywords that define the output grid and are never overridden."""


def display_times(unit: Literal["yearly", "daily"] = "daily") -> np.ndarray:
    """Output times for display runs: 0 to 20 years in 30-day steps."""
    times = np.arange(0, 20 * DAYS_PER_YEAR + 1, 30, dtype=float)
    return times if unit == "daily" else times / DAYS_PER_YEAR


def sensitivity_times(
    unit: Literal["yearly", "daily"] = "daily",
    start: int = 0
) -> np.ndarray:
    """Output times for sensitivity runs: yearly points from `start` to 7 years."""
    times = np.arange(start, 8, dtype=float)
    return times * DAYS_PER_YEAR if unit == "daily" else times


@dataclass
class ScenarioConfig:
    """
    Configuration of a model scenario.

    Attributes:
        scenario (str): Canonical parameter set, "base" or "extended".
        time_unit (str): "yearly" or "daily". Parameters and time grids are
            expressed in this unit.
        initial_state (dict[str, float]): Compartment values at time zero,
            keyed by compartment name.
        method (str): `scipy.integrate.solve_ivp` method. Defaults to "LSODA".
        rtol (float): Relative solver tolerance.
        atol (float): Absolute solver tolerance.

    Example:
        ```python
        config = ScenarioConfig.from_dict({"scenario": "extended", "time_unit": "yearly"})
        out = PossumTBModel.run(config.params(), **config.run_kwargs(config.times()))
        ```
    """

    scenario: Literal["base", "extended"] = "base"
    time_unit: Literal["yearly", "daily"] = "daily"
    initial_state: dict[str, float] = field(
        default_factory=lambda: dict(DEFAULT_INITIAL_STATE)
    )
    method: str = "LSODA"
    rtol: float = 1e-6
    atol: float = 1e-8

    def __post_init__(self):
        if self.scenario not in SCENARIOS:
            raise ConfigurationError(
                f"Unknown scenario '{self.scenario}', expected one of {tuple(SCENARIOS)}"
            )
        if self.time_unit not in UNITS:
            raise ConfigurationError(
                f"Unknown time unit '{self.time_unit}', expected one of {UNITS}"
            )
        missing = set(DEFAULT_INITIAL_STATE) - set(self.initial_state)
        unknown = set(self.initial_state) - set(DEFAULT_INITIAL_STATE)
        if missing or unknown:
            raise ConfigurationError(
                f"initial_state must have keys {list(DEFAULT_INITIAL_STATE)}"
            )
        if any(v < 0 or not np.isfinite(v) for v in self.initial_state.values()):
            raise ConfigurationError(
                "initial_state values must be finite and non-negative"
            )

    def params(self) -> ParameterSet:
        """Return the scenario's parameter set in the configured unit."""
        return get_scenario(self.scenario, unit=self.time_unit)

    def state(self) -> np.ndarray:
        """Return the initial state as a vector in compartment order."""
        return np.array([self.initial_state[name] for name in DEFAULT_INITIAL_STATE])

    def times(self, kind: Literal["display", "sensitivity"] = "display") -> np.ndarray:
        """Return the standard output grid of `kind` in the configured unit."""
        match kind:
            case "display":
                return display_times(self.time_unit)
            case "sensitivity":
                return sensitivity_times(self.time_unit)
            case _:
                raise ConfigurationError(f"Unknown time grid '{kind}'")

    def run_kwargs(self, times=None, overrides: dict = None) -> dict:
        """Keyword arguments for `PossumTBModel.run` / `run_parallel`.

        The initial state is placed at time zero, so grids that start later
        (such as the sensitivity times without year 0) are still integrated
        from the start of the scenario.

        Args:
            times (ArrayLike, optional): Output times. Defaults to the display
                grid.
            overrides (dict, optional): Settings that replace the scenario's,
                typically a model's `run_kwargs`. They may change the solver
                settings and initial state but never the output grid: "times"
                and "t0" in `overrides` are ignored with a warning.
        """
        kwargs = {
            "initial_state": self.state(),
            "t0": 0.0,
            "times": self.times() if times is None else np.asarray(times, dtype=float),
            "method": self.method,
            "rtol": self.rtol,
            "atol": self.atol,
        }
        if overrides:
            ignored = [key for key in TIME_KEYS if key in overrides]
            if ignored:
                logging.warning(
                    f"Ignoring {ignored} in run overrides; the output grid is set by the caller."
                )
            kwargs.update({k: v for k, v in overrides.items() if k not in TIME_KEYS})
        return kwargs

    @classmethod
    def from_dict(cls, data: dict):
        """Create a ScenarioConfig from a dictionary, validating its values."""
        try:
            return cls(**data)
        except TypeError as e:
            raise ConfigurationError(f"Invalid scenario configuration: {e}") from e

    @classmethod
    def from_json(cls, infile: str):
        """
        Create a ScenarioConfig from a JSON file.

        Args:
            infile (str): Path to the JSON file.

        Returns:
            ScenarioConfig: Validated configuration.

        Raises:
            ConfigurationError: If a value is invalid.
        """
        with open(infile, "r") as f:
            data = json.load(f)
        return cls.from_dict(data)

    def to_json(self, outfile: str):
        """Serialize the configuration to a new JSON file ("+x" mode)."""
        with open(outfile, "+x") as f:
            json.dump(asdict(self), f, indent=4)
