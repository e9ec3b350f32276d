"""
# Utilities

Distributions used to quantile-transform sensitivity samples and containers
for sensitivity analysis results.
"""

from .distributions import *
from .results import *
