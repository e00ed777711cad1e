from __future__ import annotations

import numpy as np
import pytest

from DYNAX.Codec import flatten
from DYNAX.Errors import SchemaError
from DYNAX.Integrators import ode_euler, sde_euler
from DYNAX.Models import System
from DYNAX.SysCheck import check_functions, validate


def _raises_on(raw, field, **kwargs):
    with pytest.raises(SchemaError) as err:
        validate(raw, **kwargs)
    assert err.value.field == field, str(err.value)
    return err.value


class TestDefaults:
    def test_defaults_are_filled(self, growth_raw):
        del growth_raw["tspan"]
        del growth_raw["odeoption"]
        sys = validate(growth_raw)
        assert isinstance(sys, System)
        assert sys.tspan == (0.0, 1.0)
        assert sys.tval == 0.0
        assert sys.odeoption == {} and sys.ddeoption == {} and sys.sdeoption == {}
        assert sys.panels == {}
        assert sys.kind == "ode"

    def test_validation_is_idempotent(self, growth_raw):
        once = validate(growth_raw)
        twice = validate(once)
        assert twice.tspan == once.tspan
        assert twice.tval == once.tval
        assert twice.odesolver == once.odesolver
        assert twice.odefun is once.odefun
        assert twice.pardef.names == once.pardef.names
        np.testing.assert_allclose(flatten(twice.vardef), flatten(once.vardef))

    def test_panels_are_carried_through(self, growth_raw):
        growth_raw["panels"] = {"TimePortrait": {"title": "Time"}}
        assert validate(growth_raw).panels == {"TimePortrait": {"title": "Time"}}


class TestStructure:
    def test_not_a_mapping(self):
        with pytest.raises(SchemaError):
            validate([1, 2, 3])

    def test_missing_vardef(self, growth_raw):
        del growth_raw["vardef"]
        _raises_on(growth_raw, "vardef")

    def test_duplicate_names(self, growth_raw):
        growth_raw["pardef"].append({"name": "k", "value": 2.0})
        _raises_on(growth_raw, "k")

    def test_non_numeric_value(self, growth_raw):
        growth_raw["pardef"][0]["value"] = "fast"
        _raises_on(growth_raw, "k")

    def test_empty_value(self, growth_raw):
        growth_raw["pardef"][0]["value"] = []
        _raises_on(growth_raw, "k")

    def test_unknown_entry_key(self, growth_raw):
        growth_raw["pardef"][0]["unit"] = "1/s"
        _raises_on(growth_raw, "pardef")

    def test_crossed_lim(self, growth_raw):
        growth_raw["pardef"][0]["lim"] = (3.0, 1.0)
        _raises_on(growth_raw, "k")

    def test_bad_tspan(self, growth_raw):
        growth_raw["tspan"] = (2.0, 0.0)
        _raises_on(growth_raw, "tspan")

    def test_tval_outside_tspan(self, growth_raw):
        growth_raw["tval"] = 5.0
        _raises_on(growth_raw, "tval")

    def test_unknown_field(self, growth_raw):
        growth_raw["pardefs"] = []
        _raises_on(growth_raw, "pardefs")

    def test_solver_must_be_a_sequence(self, growth_raw):
        growth_raw["odesolver"] = ode_euler
        _raises_on(growth_raw, "odesolver")


class TestOptions:
    @pytest.mark.parametrize("step", [0.0, -0.1, "fast"])
    def test_non_positive_step(self, growth_raw, step):
        growth_raw["odeoption"] = {"initial_step": step}
        _raises_on(growth_raw, "odeoption")

    def test_misspelled_key(self, growth_raw):
        growth_raw["odeoption"] = {"intial_step": 0.1}
        err = _raises_on(growth_raw, "odeoption")
        assert "intial_step" in err.message

    def test_key_of_another_family(self, dde_raw):
        dde_raw["ddeoption"] = {"rtol": 1e-6}
        _raises_on(dde_raw, "ddeoption")

    def test_sde_noise_sources_not_an_integer(self, sde_raw):
        sde_raw["sdeoption"]["noise_sources"] = 1.5
        _raises_on(sde_raw, "sdeoption")

    def test_valid_options_are_kept(self, sde_raw):
        sys = validate(sde_raw)
        assert sys.sdeoption == {"initial_step": 0.1, "noise_sources": 2, "seed": 0}


class TestObsolete:
    @pytest.mark.parametrize("name", ["gui", "solver", "odeopt", "ddeopt", "sdeopt"])
    def test_obsolete_fields(self, growth_raw, name):
        growth_raw[name] = {}
        err = _raises_on(growth_raw, name)
        assert "obsolete" in err.message

    def test_tabular_definitions(self, growth_raw):
        growth_raw["pardef"] = [["k", 1.0]]
        _raises_on(growth_raw, "pardef")

    def test_auxfun_without_auxdef(self, growth_raw):
        growth_raw["auxfun"] = lambda t, Y, k: Y
        _raises_on(growth_raw, "auxfun")


class TestCrossChecks:
    def test_no_functions(self, growth_raw):
        del growth_raw["odefun"]
        del growth_raw["odesolver"]
        _raises_on(growth_raw, "odefun")

    def test_ddefun_without_lagdef(self, dde_raw):
        del dde_raw["lagdef"]
        err = _raises_on(dde_raw, "lagdef")
        assert "lagdef" in err.message

    def test_ddefun_without_solver(self, dde_raw):
        del dde_raw["ddesolver"]
        _raises_on(dde_raw, "ddesolver")

    def test_ddefun_with_odefun(self, dde_raw, growth_raw):
        dde_raw["odefun"] = growth_raw["odefun"]
        _raises_on(dde_raw, "ddefun")

    def test_odefun_without_solver(self, growth_raw):
        del growth_raw["odesolver"]
        _raises_on(growth_raw, "odesolver")

    def test_solver_without_rhs(self, growth_raw):
        growth_raw["sdesolver"] = [sde_euler]
        _raises_on(growth_raw, "sdefun")

    def test_sde_requires_noise_sources(self, sde_raw):
        del sde_raw["sdeoption"]["noise_sources"]
        _raises_on(sde_raw, "sdeoption")

    def test_sde_noise_sources_must_be_positive_int(self, sde_raw):
        sde_raw["sdeoption"]["noise_sources"] = 0
        _raises_on(sde_raw, "sdeoption")

    def test_sde_randn_rows(self, sde_raw):
        sde_raw["sdeoption"]["randn"] = np.zeros((3, 10))
        _raises_on(sde_raw, "sdeoption")

    def test_sdefun_without_drift(self, sde_raw):
        del sde_raw["odefun"]
        _raises_on(sde_raw, "odefun")

    def test_auxdef_without_auxfun(self, growth_raw):
        growth_raw["auxdef"] = [{"name": "k2", "value": 0.0}]
        _raises_on(growth_raw, "auxfun")


class TestDiagnose:
    def test_all_functions_pass(self, sde_raw, capsys):
        validate(sde_raw, diagnose=True, verbose=True)
        out = capsys.readouterr().out
        assert "sys.odefun format is OK" in out
        assert "sys.sdefun format is OK" in out
        assert "ALL TESTS PASSED OK" in out

    def test_silent_without_verbose(self, growth_raw, capsys):
        validate(growth_raw, diagnose=True)
        assert capsys.readouterr().out == ""

    def test_wrong_length(self, growth_raw):
        growth_raw["odefun"] = lambda t, Y, k: np.zeros(3)
        _raises_on(growth_raw, "odefun", diagnose=True)

    def test_wrong_arity_is_a_schema_error(self, growth_raw):
        growth_raw["odefun"] = lambda t, Y: Y
        err = _raises_on(growth_raw, "odefun", diagnose=True)
        assert isinstance(err.__cause__, TypeError)

    def test_diffusion_shape(self, sde_raw):
        sde_raw["sdefun"] = lambda t, Y, sigma: np.ones((2, 3))
        _raises_on(sde_raw, "sdefun", diagnose=True)

    def test_auxfun_shape(self, growth_raw):
        growth_raw["auxdef"] = [{"name": "double", "value": 0.0}]
        growth_raw["auxfun"] = lambda sol, k: 2.0 * sol.y
        sys = validate(growth_raw)
        check_functions(sys, verbose=False)

        growth_raw["auxfun"] = lambda sol, k: np.zeros((1, 5))
        _raises_on(growth_raw, "auxfun", diagnose=True)

    def test_ddefun_receives_lag_matrix(self, dde_raw):
        seen = {}

        def ddefun(t, Y, Z, a):
            seen["Z"] = Z.shape
            return a * Z[:, 0]

        dde_raw["ddefun"] = ddefun
        validate(dde_raw, diagnose=True)
        assert seen["Z"] == (1, 1)
