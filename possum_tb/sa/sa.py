"""Global sensitivity analysis using Sobol indices.

This module implements variance-based global sensitivity analysis of the
possum bTB model via the SALib library. It computes first-order and
total-order Sobol' indices of every compartment at every output time, with
bootstrap confidence intervals, and a dummy-parameter noise floor against
which real parameters are judged.

The implementation focuses on Sobol sequence sampling for efficient
parameter space exploration. Samples are drawn on the unit hypercube and
quantile-transformed through each parameter's marginal distribution, so
that degenerate (fixed) parameters keep their column in the design.

Features:
    - Scrambled Sobol sequence sampling (Saltelli design)
    - First-order (Saltelli) and total-order (Jansen) indices
    - Optional second-order indices
    - Bootstrap confidence intervals
    - Dummy-parameter noise floor
    - Parallel model execution with an explicit per-sample failure policy

References:
    - Saltelli, A., et al. (2010). Variance based sensitivity analysis of
      model output. Design and estimator for the total sensitivity index
    - Jansen, M.J.W. (1999). Analysis of variance designs for model output
    - Khorashadi Zadeh, F., et al. (2017). Comparison of variance-based and
      moment-independent global sensitivity analysis approaches

Typical usage example:

    from possum_tb import PossumTBModel
    from possum_tb.sa import SensitivityAnalysis, SensitivityAnalysisConfig

    config = SensitivityAnalysisConfig(samples=512, workers=8)
    sa = SensitivityAnalysis(PossumTBModel(), config)
    results = sa.run()
    results.total_order()
"""

# Model and config
from ..model import Model
from ..config.params import ParameterSet, get_scenario
from ..errors import PossumTBError
from ..utils.results import SobolResults, DUMMY, INDEX_COLUMNS
from .config import SensitivityAnalysisConfig, SensitivityAnalysisProblem

# SALib
from SALib.sample import sobol as ssobol
from SALib.analyze import sobol as asobol

# Logging
import logging

# Data
from scipy.stats import norm
import pandas as pd
import numpy as np


__all__ = ["SensitivityAnalysis", "dummy_indices"]


def _dummy_estimates(A: np.ndarray, B: np.ndarray) -> tuple[float, float]:
    f0 = np.mean(np.r_[A, B])
    V = np.var(np.r_[A, B])
    S1 = (np.mean(A * B) - f0 ** 2) / V
    ST = 1 - (np.mean(A * A) - f0 ** 2) / V
    return S1, ST


def dummy_indices(
    Y: np.ndarray,
    num_vars: int,
    calc_second_order: bool = False,
    num_resamples: int = 100,
    conf_level: float = 0.95,
    seed: int = None,
) -> dict[str, float]:
    """Sobol' indices of a parameter with no effect on the output.

    The estimates use only the A and B blocks of the design. The first-order
    estimate correlates outputs that share no input; the total-order estimate
    compares the variance of A with the pooled variance. Both are zero in
    expectation, so their magnitude measures the noise of the estimators at
    this sample size.

    Args:
        Y (np.ndarray): Model outputs in Saltelli design order.
        num_vars (int): Number of design columns.
        calc_second_order (bool, optional): Whether the design includes the
            second-order blocks. Defaults to False.
        num_resamples (int, optional): Bootstrap resamples. Defaults to 100.
        conf_level (float, optional): Confidence level. Defaults to 0.95.
        seed (int, optional): Seed of the bootstrap generator.

    Returns:
        dict[str, float]: Keys "S1", "S1_conf", "ST", "ST_conf".
    """
    step = 2 * num_vars + 2 if calc_second_order else num_vars + 2
    A = Y[0::step]
    B = Y[(step - 1)::step]
    N = len(A)

    S1, ST = _dummy_estimates(A, B)

    rng = np.random.default_rng(seed)
    r = rng.integers(N, size=(num_resamples, N))
    boot = np.array([_dummy_estimates(A[idx], B[idx]) for idx in r])
    z = norm.ppf(0.5 + conf_level / 2)

    return {
        "S1": S1,
        "S1_conf": z * boot[:, 0].std(ddof=1),
        "ST": ST,
        "ST_conf": z * boot[:, 1].std(ddof=1),
    }


class SensitivityAnalysis:
    """Global sensitivity analysis using Sobol indices.

    The analysis runs as a pipeline: design generation, quantile transform,
    batch evaluation, index computation and noise floor. Each sample row is
    an independent model run with its own immutable parameter set.

    Attributes:
        model (Model): The model instance to analyze. Must implement
            run_parallel.
        config (SensitivityAnalysisConfig): Configuration object containing
            the sampling space, outputs and execution parameters.

    Example:
        ```python
        sa = SensitivityAnalysis(PossumTBModel(), SensitivityAnalysisConfig())
        results = sa.run()
        results.influential("Ia")
        ```
    """

    def __init__(
        self,
        model: Model,
        config: SensitivityAnalysisConfig,
    ):
        """Initialize the SensitivityAnalysis with model and configuration.

        Args:
            model (Model): The model instance to perform sensitivity analysis
                on. Its `run_kwargs` override the scenario's solver settings
                and initial state; the output times always come from `config`.
            config (SensitivityAnalysisConfig): Configuration containing the
                sampling space, outputs and execution parameters.
        """
        self.model = model
        self.config = config

    @property
    def step(self) -> int:
        """Number of design rows per base sample."""
        D = self.config.problem.num_vars
        return 2 * D + 2 if self.config.calc_second_order else D + 2

    def _get_samples(self, problem: SensitivityAnalysisProblem) -> pd.DataFrame:
        """Generate the Sobol design and map it through the marginals.

        Args:
            problem (SensitivityAnalysisProblem): Unit-hypercube problem.

        Returns:
            pd.DataFrame: One column per sampled parameter, N·(p+2) rows
                (N·(2p+2) with second-order indices), in yearly units.

        Raises:
            ConfigurationError: If a marginal is invalid, e.g. inverted bounds.
        """
        # Validate the marginals before spending time on the design
        space = self.config.space_config().get_search_space()

        logging.info("Retrieving Sobol samples.")
        samples = ssobol.sample(
            problem.to_dict(),
            N=self.config.samples,
            calc_second_order=self.config.calc_second_order,
            scramble=True,
            seed=self.config.seed,
        )   # shape (N * step, D)

        # Transform uniform samples to parameter distributions using inverse CDF
        design = pd.DataFrame({
            name: space[name].ppf(samples[:, i])
            for i, name in enumerate(problem.names)
        })
        logging.info(f"Design has {len(design)} rows over {problem.num_vars} parameters.")
        return design

    def _get_param_sets(self, design: pd.DataFrame) -> list[ParameterSet]:
        """Build one immutable parameter set per design row, in the scenario unit."""
        scenario = self.config.scenario
        base = get_scenario(scenario.scenario, unit="yearly").to_dict()
        return [
            ParameterSet.from_dict(dict(base, **row), unit="yearly").to_unit(scenario.time_unit)
            for row in design.to_dict(orient="records")
        ]

    def _evaluate(
        self,
        param_sets: list[ParameterSet],
        times: np.ndarray,
    ) -> tuple[np.ndarray, list[int]]:
        """Run the model for every parameter set.

        Returns:
            tuple: outputs with shape (rows, T, Y_D), NaN for failed rows,
                and the sorted list of base-sample groups containing a failure.

        Raises:
            SampleEvaluationError: If a run fails and the failure policy is
                "raise".
        """
        cfg = self.config
        run_kwargs = cfg.scenario.run_kwargs(times, overrides=self.model.run_kwargs)

        logging.info("Running model with samples.")
        results = self.model.run_parallel(
            X=param_sets,
            workers=cfg.workers,
            executor=cfg.executor,
            return_on_fail=cfg.failure_policy == "drop",
            **run_kwargs
        )

        outputs = np.full((len(param_sets), len(times), len(cfg.outputs)), np.nan)
        failed = []
        for i, out in enumerate(results):
            if out is None:
                failed.append(i)
            else:
                outputs[i] = out[cfg.outputs].to_numpy()

        dropped = sorted({i // self.step for i in failed})
        if dropped:
            logging.warning(
                f"Dropping {len(dropped)} of {len(param_sets) // self.step} base samples "
                f"after failed rows {failed}."
            )
        return outputs, dropped

    def _keep_mask(self, rows: int, dropped: list[int]) -> np.ndarray:
        keep = np.ones(rows, dtype=bool)
        for group in dropped:
            keep[group * self.step:(group + 1) * self.step] = False
        return keep

    def _analyze(
        self,
        output: np.ndarray,  # shape: (N, T, Y_D)
        times: np.ndarray,
        problem: SensitivityAnalysisProblem,
    ) -> pd.DataFrame:
        """Compute Sobol sensitivity indices for every output and time.

        Args:
            output (np.ndarray): Complete model outputs with shape (N, T, Y_D).
            times (np.ndarray): Output times, length T.
            problem (SensitivityAnalysisProblem): Problem definition.

        Returns:
            pd.DataFrame: Long index table, see `SobolResults.indices`.
        """
        cfg = self.config
        names = problem.names
        rows = []

        logging.info("Analyzing output dimension indices.")
        for i, variable in enumerate(cfg.outputs):
            for t, time in enumerate(times):
                Y = output[:, t, i]

                if np.ptp(Y) == 0:
                    # No variance to apportion
                    zeros = np.zeros(problem.num_vars)
                    si = {"S1": zeros, "S1_conf": zeros, "ST": zeros, "ST_conf": zeros}
                    dummy = {"S1": 0.0, "S1_conf": 0.0, "ST": 0.0, "ST_conf": 0.0}
                    if cfg.calc_second_order:
                        si["S2"] = np.zeros((problem.num_vars, problem.num_vars))
                        si["S2_conf"] = np.zeros((problem.num_vars, problem.num_vars))
                else:
                    si = asobol.analyze(
                        problem.to_dict(),
                        Y,
                        calc_second_order=cfg.calc_second_order,
                        num_resamples=cfg.num_resamples,
                        conf_level=cfg.conf_level,
                        print_to_console=False,
                        seed=cfg.seed,
                    )
                    dummy = dummy_indices(
                        Y,
                        problem.num_vars,
                        calc_second_order=cfg.calc_second_order,
                        num_resamples=cfg.num_resamples,
                        conf_level=cfg.conf_level,
                        seed=cfg.seed,
                    )

                for index in ("S1", "ST"):
                    for j, name in enumerate(names):
                        rows.append((variable, time, name, index, si[index][j], si[f"{index}_conf"][j]))
                    rows.append((variable, time, DUMMY, index, dummy[index], dummy[f"{index}_conf"]))

                if cfg.calc_second_order:
                    for a in range(problem.num_vars):
                        for b in range(a + 1, problem.num_vars):
                            rows.append((
                                variable, time, f"{names[a]}:{names[b]}", "S2",
                                si["S2"][a, b], si["S2_conf"][a, b]
                            ))

        indices = pd.DataFrame(rows, columns=INDEX_COLUMNS[:4] + ["estimate", "conf"])
        indices["estimate"] = indices["estimate"].astype(float)
        indices["conf"] = indices["conf"].astype(float)
        indices["low"] = indices["estimate"] - indices["conf"]
        indices["high"] = indices["estimate"] + indices["conf"]
        indices["above_noise"] = self._above_noise(indices)
        return indices[INDEX_COLUMNS + ["above_noise"]]

    @staticmethod
    def _above_noise(indices: pd.DataFrame) -> pd.Series:
        """Flag rows whose lower bound exceeds the dummy's estimate, floored at zero.

        The dummy's own interval is much wider than the Jansen intervals of
        the real parameters, so only its point estimate is used as the floor.
        """
        floor = indices[indices["parameter"] == DUMMY].set_index(
            ["variable", "time", "index"]
        )["estimate"]
        keys = pd.MultiIndex.from_frame(indices[["variable", "time", "index"]])
        dummy_floor = np.maximum(floor.reindex(keys).to_numpy(), 0.0)
        flag = (indices["low"].to_numpy() > dummy_floor) & (indices["parameter"] != DUMMY).to_numpy()
        return pd.Series(flag, index=indices.index)

    def run(self) -> SobolResults:
        """Execute the complete sensitivity analysis workflow.

        Returns:
            SobolResults: Index table, design, outputs and dropped groups.

        Raises:
            ConfigurationError: If the sampling space is invalid.
            SampleEvaluationError: If a run fails under the "raise" policy.
            PossumTBError: If every base sample was dropped.

        Note:
            This method orchestrates the complete workflow:
            1. Generate Sobol sequence parameter samples
            2. Execute model runs in parallel for all samples
            3. Drop failed groups (under the "drop" policy)
            4. Calculate sensitivity indices and the dummy noise floor
        """
        problem = self.config.problem
        times = self.config.output_times()

        design = self._get_samples(problem)
        param_sets = self._get_param_sets(design)

        outputs, dropped = self._evaluate(param_sets, times)

        keep = self._keep_mask(len(design), dropped)
        if not keep.any():
            raise PossumTBError("Every base sample failed; no indices can be computed.")
        complete = outputs[keep]
        if np.isnan(complete).any():
            raise PossumTBError("Model outputs contain NaN after dropping failed samples.")

        indices = self._analyze(complete, times, problem)

        return SobolResults(
            indices=indices,
            design=design,
            outputs=outputs,
            times=times,
            variables=list(self.config.outputs),
            dropped=dropped,
        )
