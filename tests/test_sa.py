import numpy as np
import pandas as pd
import pytest
from possum_tb.model import Model, PossumTBModel, STATE_NAMES
from possum_tb.config.scenario import ScenarioConfig, display_times
from possum_tb.sa import (
    SensitivityAnalysis,
    SensitivityAnalysisConfig,
    SensitivityAnalysisProblem,
    dummy_indices,
)
from possum_tb.utils.results import SobolResults, DUMMY, INDEX_COLUMNS
from possum_tb.errors import ConfigurationError, SampleEvaluationError


class AdditiveModel(Model):
    """Y = L + 2 rba at every time and compartment, with optional failing rows."""

    def __init__(self, fail=(), run_kwargs=None):
        super().__init__(run_kwargs)
        self.fail = set(fail)

    @staticmethod
    def derivative(t, y, params):
        return np.zeros(6)

    @staticmethod
    def run(params, initial_state=None, times=None, **kwargs):
        value = params["L"] + 2 * params["rba"]
        out = pd.DataFrame({name: np.full(len(times), value) for name in STATE_NAMES})
        out.insert(0, "time", times)
        return out

    def run_parallel(self, X=None, workers=4, executor="thread", return_on_fail=True, **kwargs):
        results = []
        for i, params in enumerate(X):
            if i in self.fail:
                if not return_on_fail:
                    raise SampleEvaluationError(i, params=params.to_dict())
                results.append(None)
            else:
                results.append(self.run(params, **kwargs))
        return results


additive_space = {
    "L": ["uniform", [0.0, 1.0]],
    "rba": ["uniform", [0.0, 1.0]],
    "r": ["fixed", [0.5]],
}


def additive_config(**kwargs):
    defaults = dict(
        space=additive_space,
        outputs=["Ia"],
        times=[1.0, 2.0],
        scenario=ScenarioConfig(time_unit="yearly"),
        samples=1024,
        seed=7,
    )
    defaults.update(kwargs)
    return SensitivityAnalysisConfig(**defaults)


def test_problem_is_unit_hypercube():
    problem = SensitivityAnalysisProblem.unit(["L", "k"])
    assert problem.to_dict() == {
        "num_vars": 2, "names": ["L", "k"], "bounds": [[0.0, 1.0], [0.0, 1.0]]
    }


def test_design_shape_and_transform():
    config = SensitivityAnalysisConfig(
        space={"L": ["uniform", [3.0, 7.0]], "k": ["uniform", [40.0, 60.0]], "r": ["fixed", [0.5]]},
        samples=64,
    )
    sa = SensitivityAnalysis(PossumTBModel(), config)
    design = sa._get_samples(config.problem)
    assert list(design.columns) == ["L", "k", "r"]
    assert len(design) == 64 * (3 + 2)
    assert design["L"].between(3.0, 7.0).all()
    assert design["k"].between(40.0, 60.0).all()
    assert (design["r"] == 0.5).all()


def test_second_order_design_shape():
    config = additive_config(samples=64, calc_second_order=True)
    sa = SensitivityAnalysis(AdditiveModel(), config)
    design = sa._get_samples(config.problem)
    assert len(design) == 64 * (2 * 3 + 2)
    assert sa.step == 8


def test_design_is_reproducible():
    config = additive_config(samples=64)
    a = SensitivityAnalysis(AdditiveModel(), config)._get_samples(config.problem)
    b = SensitivityAnalysis(AdditiveModel(), config)._get_samples(config.problem)
    pd.testing.assert_frame_equal(a, b)


def test_param_sets_use_scenario_for_unsampled_parameters():
    config = additive_config(samples=8, scenario=ScenarioConfig(time_unit="daily"))
    sa = SensitivityAnalysis(AdditiveModel(), config)
    design = sa._get_samples(config.problem)
    param_sets = sa._get_param_sets(design)
    assert len(param_sets) == len(design)
    first = param_sets[0]
    assert first.unit == "daily"
    assert first["L"] == pytest.approx(design["L"].iloc[0] / 365)
    assert first["k"] == 50.0
    assert first["da"] == pytest.approx(1.0 / 365)


def test_inverted_bounds_fail_before_evaluation():
    config = additive_config(space={"L": ["uniform", [7.0, 3.0]]})

    class Exploding(AdditiveModel):
        def run_parallel(self, *args, **kwargs):
            raise AssertionError("model should not run")

    with pytest.raises(ConfigurationError, match="L"):
        SensitivityAnalysis(Exploding(), config).run()


@pytest.mark.parametrize("kwargs", [
    {"space": {"beta": ["uniform", [0.0, 1.0]]}},
    {"space": {}},
    {"outputs": ["N"]},
    {"failure_policy": "ignore"},
    {"executor": "gpu"},
    {"conf_level": 1.5},
    {"samples": 1},
])
def test_config_rejects_invalid(kwargs):
    with pytest.raises(ConfigurationError):
        additive_config(**kwargs)


def test_config_json_round_trip(tmp_path):
    config = additive_config(samples=128)
    path = tmp_path / "sa.json"
    config.to_json(str(path))
    loaded = SensitivityAnalysisConfig.from_json(str(path))
    assert loaded == config


def test_additive_model_indices():
    # Var(L) = 1/12 and Var(2 rba) = 4/12, so S1 = ST = 0.2 for L and 0.8 for rba
    results = SensitivityAnalysis(AdditiveModel(), additive_config()).run()
    assert isinstance(results, SobolResults)
    assert list(results.indices.columns) == INDEX_COLUMNS + ["above_noise"]

    first = results.first_order()
    total = results.total_order()
    for df in (first, total):
        at = df.set_index(["time", "parameter"])["estimate"]
        for t in (1.0, 2.0):
            assert at[(t, "L")] == pytest.approx(0.2, abs=0.05)
            assert at[(t, "rba")] == pytest.approx(0.8, abs=0.05)
            assert at[(t, "r")] == 0.0


def test_dummy_total_order_is_negligible():
    results = SensitivityAnalysis(AdditiveModel(), additive_config()).run()
    noise = results.noise_floor()
    assert set(noise["index"]) == {"S1", "ST"}
    assert len(noise) == 2 * 2  # two indices at two times
    assert (noise["conf"] >= 0).all()
    assert (noise["estimate"].abs() < 0.1).all()


def test_influential_parameters_exceed_noise_floor():
    results = SensitivityAnalysis(AdditiveModel(), additive_config()).run()
    assert results.influential("Ia") == ["L", "rba"]
    assert results.influential("Ia", time=1.0) == ["L", "rba"]
    assert not results.noise_floor()["above_noise"].any()


def test_pivot():
    results = SensitivityAnalysis(AdditiveModel(), additive_config()).run()
    wide = results.pivot("ST", variable="Ia")
    assert set(wide.columns) == {"L", "rba", "r", DUMMY}
    assert len(wide) == 2


def test_second_order_indices():
    results = SensitivityAnalysis(
        AdditiveModel(), additive_config(calc_second_order=True)
    ).run()
    second = results.second_order()
    assert set(second["parameter"]) == {"L:rba", "L:r", "rba:r"}
    # No interactions in an additive model
    assert (second["estimate"].abs() < 0.15).all()


def test_constant_output_has_zero_indices():
    config = additive_config(space={"k": ["uniform", [40.0, 60.0]]}, samples=32)
    results = SensitivityAnalysis(AdditiveModel(), config).run()
    assert (results.indices["estimate"] == 0).all()
    assert np.isfinite(results.indices["estimate"]).all()


def test_failure_policy_raise():
    config = additive_config(samples=32)
    with pytest.raises(SampleEvaluationError) as info:
        SensitivityAnalysis(AdditiveModel(fail={9}), config).run()
    assert info.value.index == 9


def test_failure_policy_drop():
    config = additive_config(samples=32, failure_policy="drop")
    # step is p + 2 = 5, so rows 3 and 10 belong to base samples 0 and 2
    results = SensitivityAnalysis(AdditiveModel(fail={3, 10}), config).run()
    assert results.dropped == [0, 2]
    assert np.isnan(results.outputs[0:5]).all()
    assert np.isnan(results.outputs[10:15]).all()
    assert not np.isnan(results.outputs[5:10]).any()
    assert np.isfinite(results.indices["estimate"]).all()


def test_dummy_indices_are_centred_on_zero():
    rng = np.random.default_rng(0)
    num_vars = 2
    step = num_vars + 2
    Y = rng.normal(size=4096 * step)
    dummy = dummy_indices(Y, num_vars, seed=1)
    assert abs(dummy["S1"]) < 0.1
    assert abs(dummy["ST"]) < 0.1
    assert dummy["S1_conf"] > 0
    assert dummy["ST_conf"] > 0


def test_possum_model_global_sensitivity():
    config = SensitivityAnalysisConfig(
        space={
            "rba": ["uniform", [1.0, 3.0]],
            "da": ["uniform", [0.5, 1.5]],
            "k": ["uniform", [40.0, 60.0]],
            "r": ["fixed", [0.5]],
        },
        outputs=["Sa", "Ia"],
        scenario=ScenarioConfig(time_unit="yearly"),
        samples=32,
        workers=2,
    )
    results = SensitivityAnalysis(PossumTBModel(), config).run()

    assert results.outputs.shape == (32 * 6, 7, 2)
    assert not np.isnan(results.outputs).any()
    assert (results.outputs > -1e-6).all()
    np.testing.assert_allclose(results.times, np.arange(1, 8))

    table = results.indices
    assert len(table) == 2 * 7 * 2 * (4 + 1)  # variables, times, S1/ST, parameters + dummy
    assert np.isfinite(table["estimate"]).all()
    r_rows = table[table["parameter"] == "r"]
    assert (r_rows["estimate"] == 0).all()
    assert "r" not in results.influential("Ia")


def test_noise_floor_uses_dummy_estimate():
    rows = [
        # variable, time, parameter, index, estimate, conf
        ("Ia", 1.0, "da", "ST", 0.45, 0.16),
        ("Ia", 1.0, "f", "ST", 0.17, 0.09),
        ("Ia", 1.0, "v", "ST", 0.04, 0.05),
        ("Ia", 1.0, DUMMY, "ST", 0.05, 1.20),
        ("Ia", 2.0, "da", "ST", 0.02, 0.01),
        ("Ia", 2.0, DUMMY, "ST", -0.18, 1.20),
    ]
    table = pd.DataFrame(rows, columns=INDEX_COLUMNS[:6])
    table["low"] = table["estimate"] - table["conf"]
    table["high"] = table["estimate"] + table["conf"]
    flags = SensitivityAnalysis._above_noise(table)
    # A wide dummy interval does not hide clearly non-zero indices
    assert flags.tolist() == [True, True, False, False, True, False]


def test_da_is_influential_for_adult_infectious():
    config = SensitivityAnalysisConfig(
        outputs=["Ia"],
        scenario=ScenarioConfig(time_unit="yearly"),
        samples=256,
    )
    results = SensitivityAnalysis(PossumTBModel(), config).run()
    influential = results.influential("Ia")
    assert "da" in influential
    assert "r" not in influential


def test_model_run_kwargs_do_not_replace_output_times():
    model = PossumTBModel(run_kwargs={
        "initial_state": [20, 0, 0, 30, 0, 1],
        "times": display_times("yearly"),
        "rtol": 1e-7,
    })
    config = SensitivityAnalysisConfig(
        space={"rba": ["uniform", [1.0, 3.0]], "da": ["uniform", [0.5, 1.5]]},
        outputs=["Ia"],
        scenario=ScenarioConfig(time_unit="yearly"),
        samples=8,
        workers=2,
    )
    results = SensitivityAnalysis(model, config).run()
    assert results.outputs.shape == (8 * 4, 7, 1)
    np.testing.assert_allclose(results.times, np.arange(1, 8))
