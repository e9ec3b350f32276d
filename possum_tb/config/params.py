"""
# Parameter Sets

This module provides the immutable parameter set used by the possum bTB model,
the two canonical scenarios and the conversion between yearly and daily rates.

## Classes

- `ParameterSet`: Frozen mapping of the thirteen model rate constants

## Functions

- `get_scenario`: Build the "base" or "extended" parameter set

## Parameters

| name | meaning |
|------|---------|
| L    | birth rate |
| v    | vertical transmission rate from infectious adults |
| rbj  | juvenile-juvenile contact transmission |
| rba  | adult-adult contact transmission |
| rbaj | juvenile-adult contact transmission |
| f    | maturation rate |
| mj   | juvenile natural mortality |
| s    | progression rate from exposed to infectious |
| da   | adult disease mortality |
| dj   | juvenile disease mortality |
| ma   | adult natural mortality |
| k    | carrying capacity (individuals) |
| r    | steepness of the logistic density dependence |

## Example Usage

```python
from possum_tb.config.params import get_scenario

yearly = get_scenario("base")
daily = yearly.to_daily()
perturbed = daily.replace(rbj=daily["rbj"] * 1.01)
```
"""

import dataclasses
from dataclasses import dataclass, asdict, fields
from typing import Literal
import numpy as np

from ..errors import ConfigurationError


DAYS_PER_YEAR = 365
"""Days per year used to convert yearly rates to daily rates."""

SCALE_INVARIANT = ("k", "r")
"""Parameters kept at their original magnitude by unit conversion."""

UNITS = ("yearly", "daily")

SCENARIOS = {
    "base": dict(
        L=5.0, v=0.1, rbj=2.1, rba=2.1, rbaj=2.1, f=1.0, mj=0.2,
        s=5.0, da=1.0, dj=1.0, ma=0.2, k=50.0, r=0.5
    ),
    "extended": dict(
        L=5.0, v=0.1, rbj=1.4, rba=2.8, rbaj=2.1, f=1.0, mj=0.2,
        s=5.0, da=0.7, dj=1.5, ma=0.2, k=50.0, r=0.5
    ),
}
"""Canonical parameter values in yearly units."""


@dataclass(frozen=True)
class ParameterSet:
    """
    Immutable set of model rate constants.

    Values are validated on construction: every parameter must be present and
    finite. Perturbations are made with `replace`, which returns a new
    instance, so a parameter set can be shared freely between threads and
    processes.

    Attributes:
        L, v, rbj, rba, rbaj, f, mj, s, da, dj, ma, k, r (float): Model
            parameters, see the module docstring.
        unit (str): Either "yearly" or "daily".

    Example:
        ```python
        params = ParameterSet.from_dict(
            {"L": 5, "v": 0.1, ..., "r": 0.5},
            unit="yearly"
        )
        params["L"]           # 5.0
        params.to_daily()["L"]  # 5 / 365
        ```
    """
    L: float
    v: float
    rbj: float
    rba: float
    rbaj: float
    f: float
    mj: float
    s: float
    da: float
    dj: float
    ma: float
    k: float
    r: float
    unit: Literal["yearly", "daily"] = "yearly"

    def __post_init__(self):
        if self.unit not in UNITS:
            raise ConfigurationError(
                f"Unknown time unit '{self.unit}', expected one of {UNITS}"
            )
        for name in self.names():
            value = getattr(self, name)
            try:
                value = float(value)
            except (TypeError, ValueError):
                raise ConfigurationError(
                    f"Parameter '{name}' must be numeric, got {value!r}"
                ) from None
            if not np.isfinite(value):
                raise ConfigurationError(
                    f"Parameter '{name}' must be finite, got {value}"
                )
            object.__setattr__(self, name, value)

    @classmethod
    def names(cls) -> tuple[str, ...]:
        """Return the parameter names in canonical order."""
        return tuple(f.name for f in fields(cls) if f.name != "unit")

    @classmethod
    def from_dict(cls, data: dict, unit: str = "yearly"):
        """
        Create a ParameterSet from a mapping of parameter names to values.

        Args:
            data (dict): Mapping with every parameter name as a key.
            unit (str, optional): Unit of the values. Defaults to "yearly".

        Returns:
            ParameterSet: Validated parameter set.

        Raises:
            ConfigurationError: If a key is missing, unknown, or a value is
                not finite.
        """
        names = cls.names()
        missing = [name for name in names if name not in data]
        if missing:
            raise ConfigurationError(f"Missing parameters: {missing}")
        unknown = [name for name in data if name not in names]
        if unknown:
            raise ConfigurationError(f"Unknown parameters: {unknown}")
        return cls(unit=unit, **{name: data[name] for name in names})

    def to_dict(self) -> dict[str, float]:
        """Return the parameter values as a plain dictionary (without unit)."""
        data = asdict(self)
        data.pop("unit")
        return data

    def replace(self, **changes):
        """Return a copy of this parameter set with `changes` applied."""
        unknown = [name for name in changes if name not in self.names()]
        if unknown:
            raise ConfigurationError(f"Unknown parameters: {unknown}")
        return dataclasses.replace(self, **changes)

    def _convert(self, factor: float, unit: str):
        values = {
            name: value if name in SCALE_INVARIANT else value * factor
            for name, value in self.to_dict().items()
        }
        return ParameterSet(unit=unit, **values)

    def to_daily(self):
        """Convert yearly rates to daily rates; k and r are unchanged."""
        if self.unit == "daily":
            return self
        return self._convert(1 / DAYS_PER_YEAR, "daily")

    def to_yearly(self):
        """Convert daily rates to yearly rates; k and r are unchanged."""
        if self.unit == "yearly":
            return self
        return self._convert(DAYS_PER_YEAR, "yearly")

    def to_unit(self, unit: str):
        """Convert to `unit` ("yearly" or "daily")."""
        if unit not in UNITS:
            raise ConfigurationError(
                f"Unknown time unit '{unit}', expected one of {UNITS}"
            )
        return self.to_daily() if unit == "daily" else self.to_yearly()

    # Mapping access
    def __getitem__(self, name: str) -> float:
        if name not in self.names():
            raise KeyError(name)
        return getattr(self, name)

    def __iter__(self):
        return iter(self.names())

    def __len__(self):
        return len(self.names())

    def keys(self):
        return self.names()

    def values(self):
        return tuple(getattr(self, name) for name in self.names())

    def items(self):
        return tuple((name, getattr(self, name)) for name in self.names())


def get_scenario(
    name: Literal["base", "extended"] = "base",
    unit: Literal["yearly", "daily"] = "yearly"
) -> ParameterSet:
    """
    Build one of the canonical parameter sets.

    Args:
        name (str, optional): "base" or "extended". Defaults to "base".
        unit (str, optional): "yearly" or "daily". Defaults to "yearly".

    Returns:
        ParameterSet: The scenario's parameters in the requested unit.

    Raises:
        ConfigurationError: If the scenario or unit is unknown.
    """
    if name not in SCENARIOS:
        raise ConfigurationError(
            f"Unknown scenario '{name}', expected one of {tuple(SCENARIOS)}"
        )
    return ParameterSet.from_dict(SCENARIOS[name], unit="yearly").to_unit(unit)
