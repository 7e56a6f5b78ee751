import numpy as np
import pytest

from spptest.curves.curve_set import (
    CurveSet,
    NotResidualError,
    ValidationError,
    create_curve_set,
    is_residual_curve_set,
    require_residual,
)


def _fields(**extra):
    fields = {
        "r": np.array([0.0, 1.0, 2.0]),
        "obs": np.array([1.0, 2.0, 3.0]),
        "sim_m": np.array([[1.1, 0.9], [2.2, 1.8], [3.3, 2.7]]),
    }
    fields.update(extra)
    return fields


def _assert_field_error(fields, field, **kwargs):
    with pytest.raises(ValidationError) as info:
        create_curve_set(fields, **kwargs)
    assert info.value.field == field
    return info.value


def test_create_curve_set_accepts_valid_fields():
    cs = create_curve_set(_fields(theo=[1.0, 2.0, 3.0]))
    assert isinstance(cs, CurveSet)
    assert cs.n_r == 3
    assert cs.n_sim == 2
    assert cs.has_theo
    assert cs.is_residual is False
    assert cs.fields() == ("r", "obs", "sim_m", "theo", "is_residual")


def test_curve_set_arrays_are_read_only_copies():
    fields = _fields()
    cs = create_curve_set(fields)
    fields["obs"][0] = 99.0
    assert cs.obs[0] == 1.0
    with pytest.raises(ValueError):
        cs.obs[0] = 5.0


def test_unknown_field_is_rejected():
    err = _assert_field_error(_fields(extra=[1, 2, 3]), "extra")
    assert "allowed names" in err.reason


def test_mismatched_sim_m_rows_names_sim_m():
    _assert_field_error(_fields(sim_m=np.ones((2, 4))), "sim_m")


def test_sim_m_without_columns_is_rejected():
    _assert_field_error(_fields(sim_m=np.empty((3, 0))), "sim_m")


def test_sim_m_must_be_a_matrix():
    err = _assert_field_error(_fields(sim_m=np.ones(3)), "sim_m")
    assert "matrix" in err.reason


def test_obs_length_must_match_r():
    _assert_field_error(_fields(obs=[1.0, 2.0]), "obs")


def test_r_must_be_finite_and_non_empty():
    _assert_field_error(_fields(r=[0.0, np.nan, 2.0]), "r")
    _assert_field_error({"r": [], "obs": [], "sim_m": np.empty((0, 1))}, "r")


def test_non_finite_values_need_explicit_permission():
    fields = _fields(obs=[np.inf, 2.0, 3.0])
    _assert_field_error(fields, "obs")
    cs = create_curve_set(fields, allow_inf_values=True)
    assert np.isinf(cs.obs[0])


def test_non_numeric_values_are_rejected():
    _assert_field_error(_fields(obs=["a", "b", "c"]), "obs")


def test_theo_length_must_match_r():
    _assert_field_error(_fields(theo=[1.0, 2.0]), "theo")


def test_is_residual_must_be_a_single_boolean():
    _assert_field_error(_fields(is_residual="yes"), "is_residual")
    _assert_field_error(_fields(is_residual=[True, False]), "is_residual")
    assert create_curve_set(_fields(is_residual=np.array([True]))).is_residual


def test_residual_curve_set_cannot_carry_theo():
    _assert_field_error(_fields(theo=[1.0, 2.0, 3.0], is_residual=True), "theo")


def test_residual_queries():
    plain = create_curve_set(_fields())
    resid = create_curve_set(_fields(is_residual=True))
    assert not is_residual_curve_set(plain)
    assert is_residual_curve_set(resid)
    assert require_residual(resid) is resid
    with pytest.raises(NotResidualError):
        require_residual(plain)


def test_equality_compares_values():
    a = create_curve_set(_fields())
    b = create_curve_set(_fields())
    c = create_curve_set(_fields(obs=[1.0, 2.0, 3.5]))
    assert a == b
    assert a != c
    assert a != create_curve_set(_fields(theo=[1.0, 2.0, 3.0]))
