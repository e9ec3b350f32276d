"""
# Parameter Space Configuration

This module provides configuration classes for defining the marginal
distributions of model parameters sampled in the global sensitivity analysis.

## Classes

- `SampleSpace`: Container for a distribution factory and its parameters
- `SpaceConfig`: Configuration for multiple parameter sampling spaces

## Constants

- `DISTRIBUTIONS`: Default mapping of distribution names to factories
- `DEFAULT_SPACE`: Default sampling space of the possum bTB model (yearly units)

## Example Usage

```python
from possum_tb.config.space import SpaceConfig

space_config = SpaceConfig.from_dict({
    'rba': ['uniform', [1.0, 3.0]],
    'r': ['fixed', [0.5]]
})

# Instantiate the distributions
search_space = space_config.get_search_space()
search_space['rba'].ppf([0.0, 0.5])   # [1.0, 2.0]
```
"""

from typing import Callable
from dataclasses import dataclass

from ..utils.distributions import (
    FixedDistribution,
    get_scipy_uniform,
    get_scipy_normal,
    get_scipy_truncated_normal,
)
from ..errors import ConfigurationError


DISTRIBUTIONS: dict[str, Callable] = {
    'uniform': get_scipy_uniform,
    'normal': get_scipy_normal,
    'truncnorm': get_scipy_truncated_normal,
    'fixed': FixedDistribution,
}


@dataclass
class SampleSpace:
    """
    Container for a distribution factory and its parameters.

    Attributes:
        distribution (Callable): Factory returning an object with a `ppf`.
        parameters (tuple[float]): Arguments for the factory.

    Example:
        ```python
        space = SampleSpace(distribution=get_scipy_uniform, parameters=(0.0, 1.0))
        dist_class, params = space.unpack()
        distribution = dist_class(*params)
        ```
    """
    distribution: Callable
    parameters: tuple[float]

    def unpack(self):
        """Return (distribution_factory, parameters_tuple) ready for instantiation."""
        return (self.distribution, self.parameters)


class SpaceConfig(dict[str, SampleSpace]):
    """
    Configuration for multiple parameter sampling spaces.

    Keys are parameter names, values are SampleSpace instances. Insertion
    order defines the column order of the sample design.

    Example:
        ```python
        space_config = SpaceConfig.from_dict({
            'L': ['uniform', [3.0, 7.0]],
            'k': ['uniform', [40, 60]],
            'r': ['fixed', [0.5]]
        })
        space_config.names()   # ['L', 'k', 'r']
        ```
    """

    @classmethod
    def from_dict(cls, data: dict, mapping: dict[str, Callable] = None):
        """
        Create a SpaceConfig from configuration data.

        Args:
            data (dict): Parameter names mapped to [distribution_name, parameters].
            mapping (dict[str, Callable], optional): Distribution names mapped
                to factories. Defaults to `DISTRIBUTIONS`.

        Returns:
            SpaceConfig: Configured instance with parameter spaces.

        Raises:
            ConfigurationError: If a distribution type is unknown or an entry
                is malformed.
        """
        mapping = DISTRIBUTIONS if mapping is None else mapping
        space_config = {}
        for k, v in data.items():
            try:
                dist_type, params = v[0].lower(), v[1]
            except (TypeError, IndexError, AttributeError):
                raise ConfigurationError(
                    f"Space entry for '{k}' must be [distribution, parameters], got {v!r}"
                ) from None
            if dist_type not in mapping:
                raise ConfigurationError(f"Unknown distribution type: {dist_type}")
            space_config[k] = SampleSpace(
                distribution=mapping[dist_type],
                parameters=tuple(params)
            )
        return cls(space_config)

    def names(self) -> list[str]:
        return list(self.keys())

    def get_search_space(self):
        """
        Instantiate the distributions of every parameter.

        Returns:
            dict[str, object]: Parameter names mapped to frozen distributions.

        Raises:
            ConfigurationError: If a distribution's parameters are invalid,
                for instance inverted uniform bounds.
        """
        space = {}
        for param_name, samplespace in self.items():
            sampler, parameters = samplespace.unpack()
            try:
                space[param_name] = sampler(*parameters)
            except ConfigurationError as e:
                raise ConfigurationError(f"Parameter '{param_name}': {e}") from e
            except TypeError as e:
                raise ConfigurationError(
                    f"Parameter '{param_name}': bad distribution parameters {parameters}: {e}"
                ) from e
        return space


DEFAULT_SPACE = {
    'L': ['uniform', [3.0, 7.0]],
    'v': ['uniform', [0.0, 0.2]],
    'rbj': ['uniform', [1.0, 3.0]],
    'rba': ['uniform', [1.0, 3.0]],
    'rbaj': ['uniform', [1.0, 3.0]],
    'f': ['uniform', [0.5, 1.5]],
    'mj': ['uniform', [0.1, 0.4]],
    's': ['uniform', [2.0, 8.0]],
    'da': ['uniform', [0.5, 1.5]],
    'dj': ['uniform', [0.5, 1.5]],
    'ma': ['uniform', [0.1, 0.4]],
    'k': ['uniform', [40.0, 60.0]],
    'r': ['fixed', [0.5]],
}
"""Default marginals of the Sobol' analysis, in yearly units."""
