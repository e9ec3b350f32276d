"""
# Configuration Management

This module provides the parameter sets, scenario settings and sampling
spaces used throughout the possum_tb package.

## Components

- **ParameterSet**: Immutable model parameters with yearly/daily conversion
- **ScenarioConfig**: Scenario, time unit, initial state and solver settings
- **SpaceConfig**: Marginal distributions for sensitivity sampling

## Example Usage

```python
from possum_tb.config import get_scenario, ScenarioConfig, SpaceConfig

params = get_scenario("extended", unit="daily")

scenario = ScenarioConfig.from_dict({"scenario": "base", "time_unit": "yearly"})

space_config = SpaceConfig.from_dict({
    'rba': ['uniform', [1.0, 3.0]],
    'r': ['fixed', [0.5]]
})
```
"""

from .params import *
from .scenario import *
from .space import *
