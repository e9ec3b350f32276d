import numpy as np
import pytest
from possum_tb.model import PossumTBModel, STATE_NAMES
from possum_tb.config.scenario import ScenarioConfig, display_times
from possum_tb.sa import LocalSensitivity, LocalSensitivityConfig
from possum_tb.errors import ConfigurationError


disease_free = {"Sj": 20.0, "Ej": 0.0, "Ij": 0.0, "Sa": 30.0, "Ea": 0.0, "Ia": 0.0}
times = np.linspace(0, 5, 6)


def make_scenario(**kwargs):
    return ScenarioConfig(time_unit="yearly", rtol=1e-10, atol=1e-12, **kwargs)


def test_table_shape_and_columns():
    config = LocalSensitivityConfig(
        parameters=["L", "rba"], variables=["Sa", "Ia"], scenario=make_scenario()
    )
    results = LocalSensitivity(PossumTBModel(), config).run(times=times)
    assert list(results.table.columns) == ["time", "variable", "parameter", "sensitivity"]
    assert len(results.table) == len(times) * 2 * 2
    assert set(results.table["parameter"]) == {"L", "rba"}
    assert list(results.baseline.columns) == ["time"] + STATE_NAMES


def test_parameters_absent_from_disease_free_dynamics_have_zero_sensitivity():
    transmission = ["v", "rbj", "rba", "rbaj", "s", "da", "dj"]
    config = LocalSensitivityConfig(
        parameters=transmission,
        variables=["Sj", "Sa"],
        scenario=make_scenario(initial_state=disease_free),
    )
    results = LocalSensitivity(PossumTBModel(), config).run(times=times)
    np.testing.assert_allclose(results.table["sensitivity"], 0.0, atol=1e-10)


def test_demographic_parameters_are_influential():
    config = LocalSensitivityConfig(
        parameters=["L", "f"],
        variables=["Sj", "Sa"],
        scenario=make_scenario(initial_state=disease_free),
    )
    results = LocalSensitivity(PossumTBModel(), config).run(times=times)
    first_year = results.table[results.table["time"] == 1.0]
    assert (first_year["sensitivity"].abs() > 1e-3).all()


def test_sensitivity_of_equilibrium_population_to_birth_rate():
    # Disease-free equilibrium N* = k + ln(L / m) / r, so (dN*/dL)(L/N*) = 1 / (r N*)
    config = LocalSensitivityConfig(
        parameters=["L"],
        scenario=make_scenario(initial_state=disease_free),
    )
    t = np.array([0.0, 60.0])
    results = LocalSensitivity(PossumTBModel(), config).run(times=t)
    final = results.table[results.table["time"] == 60.0].set_index("variable")["sensitivity"]
    y = results.baseline[STATE_NAMES].iloc[-1]
    N = y.sum()
    infected = ["Ej", "Ij", "Ea", "Ia"]
    susceptible = ["Sj", "Sa"]
    # Zero compartments are reported unnormalized and have no derivative here
    np.testing.assert_allclose(final[infected], 0.0, atol=1e-8)
    elasticity = (final[susceptible] * y[susceptible]).sum() / N
    params = config.scenario.params()
    assert elasticity == pytest.approx(1 / (params["r"] * N), rel=1e-3)


def test_forward_and_central_schemes_agree():
    kwargs = dict(parameters=["rba", "ma"], variables=["Ia"], scenario=make_scenario())
    forward = LocalSensitivity(PossumTBModel(), LocalSensitivityConfig(**kwargs)).run(times=times)
    central = LocalSensitivity(
        PossumTBModel(), LocalSensitivityConfig(scheme="central", **kwargs)
    ).run(times=times)
    np.testing.assert_allclose(
        forward.table["sensitivity"], central.table["sensitivity"], rtol=1e-2, atol=1e-6
    )


def test_summary():
    config = LocalSensitivityConfig(
        parameters=["L", "da"], variables=["Ia"], scenario=make_scenario()
    )
    results = LocalSensitivity(PossumTBModel(), config).run(times=times)
    summary = results.summary()
    assert list(summary.columns) == ["parameter", "variable", "L1", "L2", "mean", "min", "max"]
    assert len(summary) == 2
    row = summary[summary["parameter"] == "da"].iloc[0]
    assert row["L2"] >= row["L1"] >= 0
    assert row["min"] <= row["mean"] <= row["max"]
    wide = results.wide("Ia")
    assert set(wide.columns) == {"L", "da"}
    np.testing.assert_allclose(wide.index, times)


def test_zero_valued_parameter_uses_absolute_step():
    scenario = make_scenario()
    params = scenario.params().replace(v=0.0)
    config = LocalSensitivityConfig(parameters=["v"], variables=["Ij"], scenario=scenario)
    results = LocalSensitivity(PossumTBModel(), config).run(params=params, times=times)
    assert np.all(np.isfinite(results.table["sensitivity"]))


def test_scan_grid_and_padding():
    config = LocalSensitivityConfig(variables=["Ia"], scenario=make_scenario())
    scan = LocalSensitivity(PossumTBModel(), config).scan("rba", step=0.25, n_steps=5, times=times)
    assert list(scan.columns) == ["change", "value", "time", "variable", "output"]
    assert len(scan) == 11 * len(times)
    changes = np.round(scan["change"].unique(), 10)
    np.testing.assert_allclose(changes, np.arange(-5, 6) * 0.25)

    # Values at -125% and -100% are not positive and are padded with NaN
    padded = scan[scan["value"] <= 0]
    assert set(np.round(padded["change"], 10)) == {-1.25, -1.0}
    assert padded["output"].isna().all()
    assert scan[scan["value"] > 0]["output"].notna().all()


def test_scan_baseline_matches_model_run():
    scenario = make_scenario()
    config = LocalSensitivityConfig(variables=["Ia", "Sa"], scenario=scenario)
    scan = LocalSensitivity(PossumTBModel(), config).scan("da", step=0.1, n_steps=1, times=times)
    base = scan[np.isclose(scan["change"], 0.0)]
    out = PossumTBModel.run(scenario.params(), **scenario.run_kwargs(times))
    np.testing.assert_allclose(base[base["variable"] == "Ia"]["output"], out["Ia"])


def test_scan_unknown_parameter_raises():
    with pytest.raises(ConfigurationError):
        LocalSensitivity(PossumTBModel()).scan("beta")


@pytest.mark.parametrize("kwargs", [
    {"parameters": ["beta"]},
    {"variables": ["N"]},
    {"scheme": "backward"},
    {"delta": 0.0},
])
def test_config_rejects_invalid(kwargs):
    with pytest.raises(ConfigurationError):
        LocalSensitivityConfig(**kwargs)


def test_model_run_kwargs_do_not_replace_output_times():
    model = PossumTBModel(run_kwargs={
        "initial_state": [20, 0, 0, 30, 0, 1],
        "times": display_times("daily"),
    })
    config = LocalSensitivityConfig(
        parameters=["rba"], variables=["Ia"], scenario=ScenarioConfig(time_unit="daily")
    )
    t = [0.0, 365.0, 730.0]
    results = LocalSensitivity(model, config).run(times=t)
    assert len(results.table) == 3
    np.testing.assert_allclose(results.baseline["time"], t)
    scan = LocalSensitivity(model, config).scan("rba", n_steps=1, times=t)
    assert len(scan) == 3 * 3
