"""
# Sensitivity Analysis

This module provides local and global sensitivity analysis of the possum bTB
model, to understand which demographic and transmission parameters drive
outbreak dynamics.

## Components

- `SensitivityAnalysis`: Global variance-based (Sobol') analysis with a
  dummy-parameter noise floor
- `LocalSensitivity`: Finite-difference sensitivity coefficients and
  percent-change scans
- `SensitivityAnalysisConfig`, `LocalSensitivityConfig`: Configuration classes
- `SensitivityAnalysisProblem`: SALib problem definition

## Example Usage

```python
from possum_tb import PossumTBModel
from possum_tb.sa import SensitivityAnalysis, SensitivityAnalysisConfig

config = SensitivityAnalysisConfig(samples=1024, outputs=["Ia", "Sa"])
results = SensitivityAnalysis(PossumTBModel(), config).run()

# Get sensitivity indices
first_order = results.first_order()
total_order = results.total_order()
noise = results.noise_floor()
```
"""

from .sa import *
from .local import *
from .config import *
