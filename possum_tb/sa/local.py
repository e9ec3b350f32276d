"""Local sensitivity analysis by finite differences.

This module computes normalized sensitivity coefficients of model
trajectories with respect to individual parameters,

    S(t) = (dy(t) / dp) * (p / y(t)),

by re-running the model with each parameter perturbed by a small relative
step. It also provides percent-change scans, where a parameter is moved over
a grid of relative changes and the resulting trajectories are collected.

Every perturbation builds a new ParameterSet; the baseline is never mutated,
so perturbed runs can be evaluated in parallel.

Typical usage example:

    from possum_tb import PossumTBModel
    from possum_tb.sa import LocalSensitivity, LocalSensitivityConfig

    config = LocalSensitivityConfig(parameters=["rba", "da"], variables=["Ia"])
    results = LocalSensitivity(PossumTBModel(), config).run()
    results.summary()
"""

from ..model import Model
from ..config.params import ParameterSet
from ..errors import ConfigurationError
from ..utils.results import LocalSensitivityResults
from .config import LocalSensitivityConfig

import logging

import pandas as pd
import numpy as np


__all__ = ["LocalSensitivity"]


class LocalSensitivity:
    """Local finite-difference sensitivity of model trajectories.

    Attributes:
        model (Model): Model to perturb. Its `run_kwargs` override the
            scenario's solver settings; output times are never overridden.
        config (LocalSensitivityConfig): Parameters, variables, step and scheme.
    """

    def __init__(self, model: Model, config: LocalSensitivityConfig = None):
        self.model = model
        self.config = config if config is not None else LocalSensitivityConfig()

    def _run_kwargs(self, times) -> dict:
        return self.config.scenario.run_kwargs(times, overrides=self.model.run_kwargs)

    def _steps(self, params: ParameterSet) -> dict[str, float]:
        """Absolute step per parameter; parameters at zero use `delta` itself."""
        delta = self.config.delta
        return {
            name: delta * abs(params[name]) if params[name] != 0 else delta
            for name in self.config.parameters
        }

    def run(
        self,
        params: ParameterSet = None,
        times=None,
    ) -> LocalSensitivityResults:
        """Compute normalized sensitivity coefficients.

        Args:
            params (ParameterSet, optional): Baseline parameters, in the unit
                of `times`. Defaults to the scenario's parameter set.
            times (ArrayLike, optional): Output times. Defaults to the
                scenario's display grid.

        Returns:
            LocalSensitivityResults: Long table indexed by (time, variable,
                parameter) and the baseline trajectory.

        Raises:
            NumericalIntegrationError: If the baseline run fails.
            SampleEvaluationError: If a perturbed run fails.

        Note:
            Outputs whose baseline magnitude is below the solver's absolute
            tolerance are not divided by y; their coefficient is (dy/dp)·p.
            Parameters with a baseline value of zero are scaled by 1 instead
            of p.
        """
        cfg = self.config
        params = cfg.scenario.params() if params is None else params
        times = cfg.scenario.times("display") if times is None else np.asarray(times, dtype=float)
        run_kwargs = self._run_kwargs(times)

        logging.info("Running baseline for local sensitivity.")
        baseline = self.model.run(params, **run_kwargs)
        y0 = baseline[cfg.variables].to_numpy()  # (T, Y_D)
        atol = run_kwargs.get("atol", 1e-8)
        y_scale = np.where(np.abs(y0) > atol, y0, 1.0)

        steps = self._steps(params)
        X = []
        for name in cfg.parameters:
            X.append(params.replace(**{name: params[name] + steps[name]}))
            if cfg.scheme == "central":
                X.append(params.replace(**{name: params[name] - steps[name]}))

        logging.info(f"Running {len(X)} perturbed runs ({cfg.scheme} differences).")
        outs = self.model.run_parallel(
            X=X,
            workers=cfg.workers,
            return_on_fail=False,
            progress=False,
            **run_kwargs
        )

        frames = []
        per_param = 2 if cfg.scheme == "central" else 1
        for j, name in enumerate(cfg.parameters):
            h = steps[name]
            y_plus = outs[j * per_param][cfg.variables].to_numpy()
            if cfg.scheme == "central":
                y_minus = outs[j * per_param + 1][cfg.variables].to_numpy()
                dydp = (y_plus - y_minus) / (2 * h)
            else:
                dydp = (y_plus - y0) / h

            p_scale = params[name] if params[name] != 0 else 1.0
            sens = dydp * p_scale / y_scale

            frame = pd.DataFrame(sens, columns=cfg.variables)
            frame.insert(0, "time", times)
            frame = frame.melt(id_vars="time", var_name="variable", value_name="sensitivity")
            frame.insert(2, "parameter", name)
            frames.append(frame)

        table = pd.concat(frames, ignore_index=True)
        return LocalSensitivityResults(table=table, baseline=baseline)

    def scan(
        self,
        parameter: str,
        step: float = 0.1,
        n_steps: int = 5,
        params: ParameterSet = None,
        times=None,
    ) -> pd.DataFrame:
        """Percent-change scan of one parameter.

        The parameter is set to `p * (1 + i * step)` for `i` in
        `-n_steps..n_steps` and the model is run for each value.

        Args:
            parameter (str): Parameter to vary.
            step (float, optional): Relative change per step. Defaults to 0.1.
            n_steps (int, optional): Steps on each side of the baseline.
                Defaults to 5.
            params (ParameterSet, optional): Baseline parameters. Defaults to
                the scenario's parameter set.
            times (ArrayLike, optional): Output times. Defaults to the
                scenario's display grid.

        Returns:
            pd.DataFrame: Columns "change", "value", "time", "variable" and
                "output". Values that would be zero or negative are not run;
                their rows keep the grid shape with NaN output.

        Raises:
            ConfigurationError: If the parameter is unknown or step <= 0.
            SampleEvaluationError: If a run fails.
        """
        cfg = self.config
        if parameter not in ParameterSet.names():
            raise ConfigurationError(f"Unknown parameter '{parameter}'")
        if not step > 0:
            raise ConfigurationError(f"step must be positive, got {step}")

        params = cfg.scenario.params() if params is None else params
        times = cfg.scenario.times("display") if times is None else np.asarray(times, dtype=float)
        run_kwargs = self._run_kwargs(times)

        changes = [i * step for i in range(-n_steps, n_steps + 1)]
        values = [params[parameter] * (1 + c) for c in changes]
        valid = [i for i, value in enumerate(values) if value > 0]
        skipped = [changes[i] for i in range(len(changes)) if i not in valid]
        if skipped:
            logging.warning(
                f"Skipping non-positive values of '{parameter}' at relative changes {skipped}."
            )

        outs = self.model.run_parallel(
            X=[params.replace(**{parameter: values[i]}) for i in valid],
            workers=cfg.workers,
            return_on_fail=False,
            progress=False,
            **run_kwargs
        )
        by_index = dict(zip(valid, outs))

        frames = []
        for i, (change, value) in enumerate(zip(changes, values)):
            if i in by_index:
                out = by_index[i][cfg.variables].to_numpy()
            else:
                out = np.full((len(times), len(cfg.variables)), np.nan)
            frame = pd.DataFrame(out, columns=cfg.variables)
            frame.insert(0, "time", times)
            frame = frame.melt(id_vars="time", var_name="variable", value_name="output")
            frame.insert(0, "value", value)
            frame.insert(0, "change", change)
            frames.append(frame)

        return pd.concat(frames, ignore_index=True)
