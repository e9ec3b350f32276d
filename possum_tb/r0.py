"""
# Basic Reproduction Number

Closed-form estimate of R0 for an infectious adult introduced into a state.

The estimate is the product of three factors evaluated at the given state:

- transmission: `v·L·dw + (Sa/Na)·rba + (Sj/Nj)·rbaj`
- survival of the exposed period: `s / (s + ma·gw)`
- expected infectious lifetime: `1 / (da + ma·gw)`

where `gw` and `dw` are the logistic growth and death weights at the state's
total population. This is a point estimate, not the spectral radius of a
next-generation matrix.

## Example Usage

```python
from possum_tb.r0 import r0
from possum_tb.config.params import get_scenario

r0([20, 0, 0, 30, 0, 1], get_scenario("base", unit="daily"))
```
"""

from numpy.typing import ArrayLike
import numpy as np

from .model import logistic_weights, class_totals, check_age_classes
from .config.params import ParameterSet


__all__ = ["r0", "r0_components"]


def r0_components(state: ArrayLike, params: ParameterSet) -> dict[str, float]:
    """
    Factors of the R0 estimate at `state`.

    Args:
        state (ArrayLike): Six compartment values in `STATE_NAMES` order.
        params (ParameterSet): Model parameters.

    Returns:
        dict[str, float]: Keys "transmission", "survival",
            "infectious_period" and "r0" (their product).

    Raises:
        DegenerateStateError: If Nj or Na is zero.
    """
    state = np.asarray(state, dtype=float)
    Sj, Ej, Ij, Sa, Ea, Ia = state
    Nj, Na, N = class_totals(state)
    check_age_classes(Nj, Na)

    p = params
    gw, dw = logistic_weights(N, p.k, p.r)

    transmission = p.v * p.L * dw + (Sa / Na) * p.rba + (Sj / Nj) * p.rbaj
    survival = p.s / (p.s + p.ma * gw)
    infectious_period = 1.0 / (p.da + p.ma * gw)

    return {
        "transmission": float(transmission),
        "survival": float(survival),
        "infectious_period": float(infectious_period),
        "r0": float(transmission * survival * infectious_period),
    }


def r0(state: ArrayLike, params: ParameterSet) -> float:
    """Basic reproduction number estimated at `state`."""
    return r0_components(state, params)["r0"]
