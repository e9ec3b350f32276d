"""
# Marginal Distributions

This module provides the marginal distributions used to quantile-transform
quasi-random samples in the global sensitivity analysis. Every distribution
exposes a vectorised `ppf` (inverse CDF) mapping values in [0, 1) to
parameter values.

## Classes

- `FixedDistribution`: Degenerate distribution pinned to a single value

## Functions

- `get_scipy_uniform`: Create SciPy uniform distribution from bounds
- `get_scipy_truncated_normal`: Create SciPy truncated normal distribution
- `get_scipy_normal`: Create SciPy normal distribution

## Example Usage

```python
from possum_tb.utils.distributions import get_scipy_uniform, FixedDistribution
import numpy as np

u = np.array([0.0, 0.5, 0.99])
get_scipy_uniform(3.0, 7.0).ppf(u)   # [3.0, 5.0, 6.96]
FixedDistribution(0.5).ppf(u)        # [0.5, 0.5, 0.5]
```
"""

from scipy.stats import (
    truncnorm,
    norm,
    uniform
)
import numpy as np

from ..errors import ConfigurationError


class FixedDistribution:
    """
    Degenerate distribution with all of its mass on `value`.

    Used for parameters that keep their column in the sample design but do
    not vary, so their sensitivity indices are zero by construction.

    Attributes:
        value (float): The fixed parameter value.
    """

    def __init__(self, value: float):
        if not np.isfinite(value):
            raise ConfigurationError(f"Fixed value must be finite, got {value}")
        self.value = float(value)

    def ppf(self, q):
        """Return `value` for every quantile in `q`."""
        return np.full(np.shape(q), self.value, dtype=float)

    def __repr__(self):
        return f"FixedDistribution({self.value})"


def get_scipy_uniform(low=0.0, high=1.0):
    """
    Create a SciPy uniform distribution on [low, high].

    Args:
        low (float, optional): Lower bound. Defaults to 0.0.
        high (float, optional): Upper bound. Defaults to 1.0.

    Returns:
        scipy.stats.uniform: Frozen distribution with loc=low, scale=high-low.

    Raises:
        ConfigurationError: If the bounds are not finite or low >= high. Use
            `FixedDistribution` for a parameter that should not vary.
    """
    if not (np.isfinite(low) and np.isfinite(high)):
        raise ConfigurationError(f"Uniform bounds must be finite, got [{low}, {high}]")
    if low >= high:
        raise ConfigurationError(
            f"Uniform bounds are inverted or empty: low={low} >= high={high}"
        )
    return uniform(loc=low, scale=high - low)


def get_scipy_truncated_normal(loc=0.0, scale=1.0, a=1e-12, b=1e12):
    """
    Create a SciPy truncated normal distribution.

    Args:
        loc (float, optional): Mean of the underlying normal. Defaults to 0.0.
        scale (float, optional): Standard deviation. Defaults to 1.0.
        a (float, optional): Lower truncation bound. Defaults to 1e-12.
        b (float, optional): Upper truncation bound. Defaults to 1e12.

    Returns:
        scipy.stats.truncnorm: Configured truncated normal distribution.

    Raises:
        ConfigurationError: If scale <= 0 or a >= b.
    """
    if scale <= 0:
        raise ConfigurationError(f"Scale must be positive, got {scale}")
    if a >= b:
        raise ConfigurationError(f"Truncation bounds are inverted or empty: a={a} >= b={b}")
    a_scaled = (a - loc) / scale
    b_scaled = (b - loc) / scale
    return truncnorm(a=a_scaled, b=b_scaled, loc=loc, scale=scale)


def get_scipy_normal(loc=0.0, scale=1.0):
    """Create a SciPy normal distribution."""
    if scale <= 0:
        raise ConfigurationError(f"Scale must be positive, got {scale}")
    return norm(loc=loc, scale=scale)
