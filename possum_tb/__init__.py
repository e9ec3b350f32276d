"""
# possum_tb

A toolkit for simulating bovine tuberculosis (bTB) transmission in a possum
population stratified by age class and infection status, providing
functionality for:

- **Compartment Model**: Six-state juvenile/adult SEI ODE model with smooth
  logistic density dependence, integrated with SciPy
- **R0**: Closed-form estimate of the basic reproduction number
- **Sensitivity Analysis**: Local finite-difference coefficients and global
  variance-based Sobol' indices with a dummy-parameter noise floor
- **Configuration Management**: Immutable parameter sets, canonical scenarios,
  unit conversion and sampling spaces

## Main Components

- `PossumTBModel`: The compartment model and its integrator
- `r0`: Basic reproduction number at a state
- `config`: Parameter sets, scenarios and sampling spaces
- `sa`: Local and global sensitivity analysis
- `utils`: Distributions and result containers

## Example Usage

```python
from possum_tb import PossumTBModel, r0
from possum_tb.config import ScenarioConfig
from possum_tb.sa import SensitivityAnalysis, SensitivityAnalysisConfig

scenario = ScenarioConfig(scenario="base", time_unit="daily")
params = scenario.params()

trajectory = PossumTBModel.run(params, **scenario.run_kwargs())
print(r0(scenario.state(), params))

results = SensitivityAnalysis(PossumTBModel(), SensitivityAnalysisConfig()).run()
```
"""

from .model import *
from .r0 import *
from .errors import *
