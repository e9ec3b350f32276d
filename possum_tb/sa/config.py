"""Configuration classes for sensitivity analysis settings.

This module provides configuration classes for the global (Sobol') and local
(finite-difference) sensitivity analyses of the possum bTB model. The global
configuration supports serialization to and from JSON format for easy
persistence and loading of analysis settings.

The module includes the problem definition class for SALib compatibility.

Typical usage example:

    from possum_tb.sa import SensitivityAnalysisConfig

    config = SensitivityAnalysisConfig.from_json("sa_config.json")
    config.samples = 4096
    config.to_json("updated_sa_config.json")
"""

from dataclasses import dataclass, asdict, field
from typing import Literal
import numpy as np
import json

from ..config.space import SpaceConfig, DEFAULT_SPACE
from ..config.scenario import ScenarioConfig
from ..config.params import ParameterSet
from ..model import STATE_NAMES
from ..errors import ConfigurationError


__all__ = [
    "SensitivityAnalysisProblem",
    "SensitivityAnalysisConfig",
    "LocalSensitivityConfig",
]

FAILURE_POLICIES = ("raise", "drop")
EXECUTORS = ("thread", "process")
SCHEMES = ("forward", "central")


@dataclass
class SensitivityAnalysisProblem:
    """Problem definition for sensitivity analysis using SALib.

    The design is drawn on the unit hypercube; every column is then mapped
    through its parameter's marginal distribution. Bounds are therefore
    [0, 1] for every variable.

    Attributes:
        num_vars (int): Number of variables (parameters) in the problem.
        names (list[str]): Parameter names, one per design column.
        bounds (list[list[float]]): [min, max] bounds per variable.

    Example:
        ```python
        problem = SensitivityAnalysisProblem.unit(["L", "k", "r"])
        problem.to_dict()
        ```
    """

    num_vars: int
    names: list[str]
    bounds: list[list[float]]

    @classmethod
    def unit(cls, names: list[str]):
        """Problem over the unit hypercube for `names`."""
        return cls(
            num_vars=len(names),
            names=list(names),
            bounds=[[0.0, 1.0] for _ in names],
        )

    def to_dict(self):
        """Convert the problem definition to the dictionary SALib expects."""
        return asdict(self)


@dataclass
class SensitivityAnalysisConfig:
    """Configuration class for the global sensitivity analysis.

    Attributes:
        space (dict): Parameter names mapped to [distribution, parameters],
            in yearly units. Parameters of the model left out of the space
            keep their scenario value.
        outputs (list[str]): Output variables to analyze.
        times (list[float] | None): Output times in the scenario's unit.
            Defaults to years 1 to 7.
        scenario (ScenarioConfig): Base scenario, initial state and solver
            settings.
        samples (int): Number of base samples N. Should be a power of 2.
        workers (int): Number of parallel workers.
        executor (str): "thread" or "process".
        seed (int): Seed of the scrambled Sobol' sequence and bootstrap.
        num_resamples (int): Bootstrap resamples for confidence intervals.
        conf_level (float): Confidence level of the intervals.
        calc_second_order (bool): Also compute second-order indices; the
            design then has N·(2p+2) rows instead of N·(p+2).
        failure_policy (str): "raise" aborts on the first failed sample;
            "drop" excludes the failed sample's whole group from the
            estimators.
    """

    space: dict = field(default_factory=lambda: dict(DEFAULT_SPACE))
    outputs: list[str] = field(default_factory=lambda: list(STATE_NAMES))
    times: list[float] = None
    scenario: ScenarioConfig = field(default_factory=ScenarioConfig)
    samples: int = 256
    workers: int = 4
    executor: Literal["thread", "process"] = "thread"
    seed: int = 42
    num_resamples: int = 100
    conf_level: float = 0.95
    calc_second_order: bool = False
    failure_policy: Literal["raise", "drop"] = "raise"

    def __post_init__(self):
        if isinstance(self.scenario, dict):
            self.scenario = ScenarioConfig.from_dict(self.scenario)
        unknown = [name for name in self.space if name not in ParameterSet.names()]
        if unknown:
            raise ConfigurationError(f"Unknown parameters in space: {unknown}")
        if not self.space:
            raise ConfigurationError("The sampling space is empty")
        bad = [name for name in self.outputs if name not in STATE_NAMES]
        if bad:
            raise ConfigurationError(f"Unknown output variables: {bad}")
        if self.samples < 2:
            raise ConfigurationError(f"samples must be at least 2, got {self.samples}")
        if self.failure_policy not in FAILURE_POLICIES:
            raise ConfigurationError(
                f"Unknown failure policy '{self.failure_policy}', expected one of {FAILURE_POLICIES}"
            )
        if self.executor not in EXECUTORS:
            raise ConfigurationError(
                f"Unknown executor '{self.executor}', expected one of {EXECUTORS}"
            )
        if not 0 < self.conf_level < 1:
            raise ConfigurationError(f"conf_level must be in (0, 1), got {self.conf_level}")

    @property
    def problem(self) -> SensitivityAnalysisProblem:
        """SALib problem over the unit hypercube of the sampled parameters."""
        return SensitivityAnalysisProblem.unit(list(self.space))

    def space_config(self) -> SpaceConfig:
        return SpaceConfig.from_dict(self.space)

    def output_times(self) -> np.ndarray:
        if self.times is None:
            return self.scenario.times("sensitivity")[1:]
        return np.asarray(self.times, dtype=float)

    @classmethod
    def from_json(cls, infile: str):
        """Create a SensitivityAnalysisConfig instance from a JSON file.

        Args:
            infile (str): Path to the JSON file containing the configuration.

        Returns:
            SensitivityAnalysisConfig: A new validated configuration.

        Raises:
            FileNotFoundError: If the specified file does not exist.
            json.JSONDecodeError: If the file contains invalid JSON.
            ConfigurationError: If a key or value is invalid.
        """

        with open(infile, "r") as f:
            data = json.load(f)

        try:
            return cls(**data)
        except TypeError as e:
            raise ConfigurationError(f"Invalid sensitivity configuration: {e}") from e

    def to_json(self, outfile: str):
        """Serialize the configuration to a new JSON file.

        The file is opened in exclusive creation mode ("+x") to prevent
        accidental overwrites.
        """
        with open(outfile, "+x") as f:
            json.dump(asdict(self), f, indent=4)


@dataclass
class LocalSensitivityConfig:
    """Configuration of the local finite-difference sensitivity analysis.

    Attributes:
        parameters (list[str] | None): Parameters to perturb. Defaults to all.
        variables (list[str] | None): Output variables. Defaults to all six
            compartments.
        delta (float): Relative perturbation step.
        scheme (str): "forward" (one extra run per parameter) or "central"
            (two runs per parameter).
        workers (int): Number of parallel workers for the perturbed runs.
        scenario (ScenarioConfig): Base scenario and solver settings.
    """

    parameters: list[str] = None
    variables: list[str] = None
    delta: float = 1e-4
    scheme: Literal["forward", "central"] = "forward"
    workers: int = 4
    scenario: ScenarioConfig = field(default_factory=ScenarioConfig)

    def __post_init__(self):
        if isinstance(self.scenario, dict):
            self.scenario = ScenarioConfig.from_dict(self.scenario)
        if self.parameters is None:
            self.parameters = list(ParameterSet.names())
        if self.variables is None:
            self.variables = list(STATE_NAMES)
        unknown = [name for name in self.parameters if name not in ParameterSet.names()]
        if unknown:
            raise ConfigurationError(f"Unknown parameters: {unknown}")
        bad = [name for name in self.variables if name not in STATE_NAMES]
        if bad:
            raise ConfigurationError(f"Unknown output variables: {bad}")
        if self.scheme not in SCHEMES:
            raise ConfigurationError(
                f"Unknown finite-difference scheme '{self.scheme}', expected one of {SCHEMES}"
            )
        if not self.delta > 0:
            raise ConfigurationError(f"delta must be positive, got {self.delta}")
