"""
# Model Interface and Possum bTB Implementation

This module provides the abstract model interface and the six-compartment
ODE model of bovine tuberculosis in a possum population stratified by age
class (juvenile/adult) and infection status (Susceptible/Exposed/Infectious).

## Classes

- `Model`: Abstract base class defining the interface for all models
- `PossumTBModel`: Concrete age-structured SEI model integrated with SciPy

## Functions

- `logistic_weights`: Density-dependent growth and death weights
- `class_totals`: Juvenile, adult and total population of a state

## Key Features

- **Smooth density dependence**: births taper and deaths intensify through a
  logistic switch around the carrying capacity
- **Parallel Execution**: Support for evaluating many parameter sets concurrently
- **Explicit failures**: Solver failures and empty age classes raise instead of
  producing NaN trajectories

## Example Usage

```python
from possum_tb import PossumTBModel
from possum_tb.config.scenario import display_times
from possum_tb.config.params import get_scenario

params = get_scenario("base", unit="daily")
trajectory = PossumTBModel.run(
    params,
    initial_state=[20, 0, 0, 30, 0, 1],
    times=display_times("daily"),
)

# Run parallel simulations
param_sets = [params, params.replace(rba=params["rba"] * 2)]
results = PossumTBModel.run_parallel(X=param_sets, workers=4, times=...)
```
"""

# Basic data utils
import pandas as pd
import numpy as np
from typing import Any, Literal
from numpy.typing import ArrayLike
from abc import abstractmethod, ABC

# Integration
from scipy.integrate import solve_ivp

# Logging
import logging

from .config.params import ParameterSet
from .errors import (
    DegenerateStateError,
    NumericalIntegrationError,
    SampleEvaluationError,
)

# Parallel runs
from tqdm import tqdm
from concurrent.futures import ThreadPoolExecutor, ProcessPoolExecutor, as_completed


__all__ = [
    "STATE_NAMES",
    "Model",
    "PossumTBModel",
    "logistic_weights",
    "class_totals",
    "check_age_classes",
]


STATE_NAMES = ["Sj", "Ej", "Ij", "Sa", "Ea", "Ia"]
"""Compartment order of every state vector and trajectory."""


def logistic_weights(N: float, k: float, r: float) -> tuple[float, float]:
    """
    Density-dependent weights of the logistic switch.

    Args:
        N (float): Total population.
        k (float): Carrying capacity.
        r (float): Steepness of the switch.

    Returns:
        tuple[float, float]: (growth_weight, death_weight) where
            growth_weight = 1 / (1 + exp(-r (N - k))) scales mortality and
            death_weight = 1 - growth_weight scales births.
    """
    growth_weight = 1.0 / (1.0 + np.exp(-r * (N - k)))
    return growth_weight, 1.0 - growth_weight


def class_totals(state: ArrayLike) -> tuple[float, float, float]:
    """Return (Nj, Na, N) for a state vector in `STATE_NAMES` order."""
    Sj, Ej, Ij, Sa, Ea, Ia = state
    Nj = Sj + Ej + Ij
    Na = Sa + Ea + Ia
    return Nj, Na, Nj + Na


def check_age_classes(Nj: float, Na: float, t: float = None):
    """Raise DegenerateStateError if the juvenile or adult class is empty."""
    if Nj == 0 or Na == 0:
        where = "" if t is None else f" at t={t:g}"
        empty = "juvenile" if Nj == 0 else "adult"
        raise DegenerateStateError(f"The {empty} class is empty{where}")


class Model(ABC):
    """
    Abstract base class for compartmental models.

    This class defines the interface that all models must implement,
    providing a standardized way to compute derivatives, integrate a single
    parameter set and evaluate many parameter sets in parallel.

    Attributes:
        run_kwargs (dict): Keyword arguments passed to model execution methods.

    Example:
        ```python
        class MyModel(Model):
            def __init__(self, run_kwargs=None):
                super().__init__(run_kwargs)

            @staticmethod
            def derivative(t, y, params):
                ...

            # Implement other abstract methods...
        ```
    """
    def __init__(self, run_kwargs: dict = None):
        """
        Initialize the Model instance.

        Args:
            run_kwargs (dict, optional): Keyword arguments for model execution.
                Defaults to an empty dict.
        """
        self.run_kwargs = run_kwargs if run_kwargs is not None else {}

    @staticmethod
    @abstractmethod
    def derivative(t: float, y: np.ndarray, params: ParameterSet) -> np.ndarray:
        """
        Rate of change of the state at time `t`.

        Args:
            t (float): Current time.
            y (np.ndarray): Current state.
            params (ParameterSet): Model parameters.

        Returns:
            np.ndarray: Derivative with the same shape as `y`.
        """
        pass

    @staticmethod
    @abstractmethod
    def run(params: ParameterSet = None, *args, **kwargs) -> pd.DataFrame:
        """
        Integrate the model with a single parameter set.

        Returns:
            pd.DataFrame: Trajectory with a time column and one column per
                compartment.
        """
        pass

    @staticmethod
    @abstractmethod
    def run_parallel(X: list[ParameterSet] = None, *args, **kwargs) -> list[pd.DataFrame | None]:
        """
        Integrate the model for multiple parameter sets in parallel.

        Returns:
            list[pd.DataFrame | None]: Trajectories in the order of `X`.
                None marks failed runs when failures are not raised.
        """
        pass


class PossumTBModel(Model):
    """
    Age-structured SEI model of bovine tuberculosis in possums.

    The state holds juvenile and adult Susceptible, Exposed and Infectious
    compartments. Births enter the juvenile susceptible class; juveniles
    mature into the matching adult class at rate f. Transmission is vertical
    (v, from infectious adults to juveniles) and by contact within and
    between age classes (rbj, rba, rbaj). Births and natural mortality are
    weighted by a logistic switch of the total population around the
    carrying capacity k.

    Methods are static so that model runs can be dispatched to worker
    processes; an instance only stores default `run_kwargs`.

    Example:
        ```python
        model = PossumTBModel(run_kwargs={"initial_state": [20, 0, 0, 30, 0, 1],
                                          "times": display_times("daily")})
        out = model.run(params, **model.run_kwargs)
        out["Ia"].iloc[-1]
        ```
    """

    @staticmethod
    def derivative(t: float, y: np.ndarray, params: ParameterSet) -> np.ndarray:
        """
        Rate of change of the six compartments.

        Args:
            t (float): Current time (the model is autonomous).
            y (np.ndarray): State in `STATE_NAMES` order.
            params (ParameterSet): Model parameters in the time unit of `t`.

        Returns:
            np.ndarray: dy/dt in `STATE_NAMES` order.

        Raises:
            DegenerateStateError: If Nj or Na is zero.
        """
        Sj, Ej, Ij, Sa, Ea, Ia = y
        Nj, Na, N = class_totals(y)
        check_age_classes(Nj, Na, t)

        p = params
        gw, dw = logistic_weights(N, p.k, p.r)

        # Force of infection on juveniles and adults
        lam_j = p.v * Ia / N + p.rbj * Ij / Nj + p.rbaj * Ia / Na
        lam_a = p.rba * Ia / Na + p.rbaj * Ij / Nj

        mort_j = p.mj * gw
        mort_a = p.ma * gw

        dSj = p.L * dw * N - Sj * (lam_j + p.f + mort_j)
        dEj = Sj * lam_j - Ej * (p.s + p.f + mort_j)
        dIj = p.s * Ej - Ij * (p.dj + p.f + mort_j)
        dSa = p.f * Sj - Sa * (lam_a + mort_a)
        dEa = p.f * Ej + Sa * lam_a - Ea * (p.s + mort_a)
        dIa = p.f * Ij + p.s * Ea - Ia * (p.da + mort_a)

        return np.array([dSj, dEj, dIj, dSa, dEa, dIa])

    @staticmethod
    def run(
        params: ParameterSet,
        initial_state: ArrayLike,
        times: ArrayLike,
        method: str = "LSODA",
        rtol: float = 1e-6,
        atol: float = 1e-8,
        t0: float = None,
        **kwargs
    ) -> pd.DataFrame:
        """
        Integrate the model over `times`.

        The solver controls its own internal step size; the trajectory is
        reported at each requested time.

        Args:
            params (ParameterSet): Model parameters, in the unit of `times`.
            initial_state (ArrayLike): Six compartment values at `t0`.
            times (ArrayLike): Non-decreasing output times.
            method (str, optional): `scipy.integrate.solve_ivp` method.
                Defaults to "LSODA".
            rtol (float, optional): Relative tolerance. Defaults to 1e-6.
            atol (float, optional): Absolute tolerance. Defaults to 1e-8.
            t0 (float, optional): Start of the integration. Defaults to
                times[0]; must not be later than times[0].
            **kwargs: Ignored; accepted so that shared run kwargs can be
                passed through unchanged.

        Returns:
            pd.DataFrame: Columns "time" and `STATE_NAMES`, one row per time.

        Raises:
            DegenerateStateError: If an age class is or becomes empty.
            NumericalIntegrationError: If the solver stops early or returns
                non-finite values.
        """
        y0 = np.asarray(initial_state, dtype=float)
        times = np.asarray(times, dtype=float)
        if y0.shape != (len(STATE_NAMES),):
            raise ValueError(
                f"initial_state must have {len(STATE_NAMES)} values, got {y0.shape}"
            )
        if times.ndim != 1 or len(times) == 0:
            raise ValueError("times must be a non-empty 1D sequence")
        if np.any(np.diff(times) < 0):
            raise ValueError("times must be non-decreasing")
        t0 = times[0] if t0 is None else float(t0)
        if t0 > times[0]:
            raise ValueError(f"t0={t0:g} is after the first output time {times[0]:g}")

        check_age_classes(*class_totals(y0)[:2], t0)

        if times[-1] == t0:
            out = np.tile(y0, (len(times), 1))
        else:
            sol = solve_ivp(
                PossumTBModel.derivative,
                (t0, times[-1]),
                y0,
                method=method,
                t_eval=times,
                args=(params,),
                rtol=rtol,
                atol=atol,
            )
            if not sol.success or sol.y.shape[1] != len(times):
                last = sol.t[-1] if len(sol.t) else t0
                raise NumericalIntegrationError(
                    f"Integration failed: {sol.message}",
                    time=float(last),
                    params=params.to_dict(),
                )
            out = sol.y.T

        if not np.all(np.isfinite(out)):
            bad = times[~np.all(np.isfinite(out), axis=1)][0]
            raise NumericalIntegrationError(
                "Integration produced non-finite values",
                time=float(bad),
                params=params.to_dict(),
            )

        trajectory = pd.DataFrame(out, columns=STATE_NAMES)
        trajectory.insert(0, "time", times)
        return trajectory

    @staticmethod
    def run_parallel(
        X: list[ParameterSet] = None,
        workers: int = 4,
        executor: Literal["thread", "process"] = "thread",
        return_on_fail: bool = True,
        progress: bool = True,
        **kwargs
    ) -> list[pd.DataFrame | None]:
        """
        Integrate the model for many parameter sets concurrently.

        Every run is independent; results are written to a slot per input
        index, so the output order matches `X` regardless of completion order.

        Args:
            X (list[ParameterSet]): Parameter sets to evaluate.
            workers (int, optional): Number of concurrent workers. Defaults to 4.
            executor (str, optional): "thread" or "process" pool. Defaults to
                "thread".
            return_on_fail (bool, optional): If True, failed runs are logged
                and recorded as None. If False, the first failure (lowest
                index among those collected) is raised as a
                SampleEvaluationError. Defaults to True.
            progress (bool, optional): Show a tqdm progress bar. Defaults to True.
            **kwargs: Passed to `run()` (initial_state, times, method, ...).

        Returns:
            list[pd.DataFrame | None]: One trajectory per parameter set.

        Raises:
            SampleEvaluationError: If a run fails and `return_on_fail` is False.
        """
        N = len(X)
        res: list[Any] = [None for _ in range(N)]  # Ensure that we have an accessible index
        failures: dict[int, Exception] = {}

        pool = ProcessPoolExecutor if executor == "process" else ThreadPoolExecutor
        with pool(max_workers=workers) as ex, tqdm(total=N, disable=not progress) as pbar:
            futures = {
                ex.submit(PossumTBModel.run, X[i], **kwargs): i
                for i in range(N)  # Store corresponding sample number
            }

            for future in as_completed(futures):
                pbar.update(1)
                idx = futures[future]
                try:
                    res[idx] = future.result()
                except (NumericalIntegrationError, DegenerateStateError, ValueError) as e:
                    logging.error(f"Run for sample {idx} failed: {e}")
                    failures[idx] = e

        if failures and not return_on_fail:
            idx = min(failures)
            raise SampleEvaluationError(
                idx, params=X[idx].to_dict(), cause=failures[idx]
            ) from failures[idx]

        return res
