import math

import numpy as np
import pytest

from emm.simulate import measures as M

hypothesis = pytest.importorskip("hypothesis")
given = hypothesis.given
settings = hypothesis.settings
seed = hypothesis.seed
st = hypothesis.strategies

open_unit = st.floats(min_value=1e-9, max_value=1.0 - 1e-9, allow_nan=False, allow_infinity=False)


def test_canonical_order_has_six_measures():
    assert M.N_MEASURES == 6
    assert [m.value for m in M.CANONICAL_ORDER] == ["RR", "RR*", "OR", "RD", "HR", "HR*"]
    assert set(M.MEASURE_FUNCTIONS) == set(M.CANONICAL_ORDER)


def test_known_values():
    pc, pt = 0.2, 0.5
    assert M.relative_risk(pc, pt) == pytest.approx(2.5)
    assert M.other_relative_risk(pc, pt) == pytest.approx(0.8 / 0.5)
    assert M.odds_ratio(pc, pt) == pytest.approx(2.5 * 1.6)
    assert M.risk_difference(pc, pt) == pytest.approx(0.3)
    assert M.hazard_ratio(pc, pt) == pytest.approx(math.log(0.5) / math.log(0.8))
    assert M.other_hazard_ratio(pc, pt) == pytest.approx(math.log(0.2) / math.log(0.5))


def test_evaluate_matches_stratum_methods_in_canonical_order():
    s = M.Stratum(control_risk=0.3, treatment_risk=0.6)
    vec = s.effect_measures()
    assert vec.shape == (6,)
    expected = [
        s.relative_risk(),
        s.other_relative_risk(),
        s.odds_ratio(),
        s.risk_difference(),
        s.hazard_ratio(),
        s.other_hazard_ratio(),
    ]
    assert np.allclose(vec, expected)


def test_evaluate_vectorises_over_batches():
    c = np.array([0.1, 0.4, 0.7])
    t = np.array([0.2, 0.4, 0.5])
    out = M.evaluate(c, t)
    assert out.shape == (3, 6)
    for i in range(3):
        assert np.allclose(out[i], M.evaluate(c[i], t[i]))


def test_equal_risks_give_null_effects():
    s = M.Stratum(0.35, 0.35)
    assert s.risk_difference() == 0.0
    assert s.relative_risk() == 1.0
    assert s.odds_ratio() == pytest.approx(1.0)


@pytest.mark.parametrize("pc,pt", [(0.0, 0.5), (0.5, 1.0), (0.0, 0.0), (1.0, 1.0), (0.0, 1.0)])
def test_degenerate_inputs_do_not_raise(pc, pt):
    vec = M.evaluate(pc, pt)
    assert vec.shape == (6,)
    assert not np.all(np.isfinite(vec))


def test_zero_control_risk_is_infinite_relative_risk():
    assert math.isinf(M.relative_risk(0.0, 0.4))
    assert math.isnan(M.relative_risk(0.0, 0.0))


def test_out_of_range_inputs_propagate_nan():
    assert math.isnan(M.hazard_ratio(0.5, 1.5))
    assert math.isnan(M.other_hazard_ratio(-0.1, 0.5))


@seed(0)
@settings(max_examples=200)
@given(open_unit, open_unit)
def test_odds_ratio_is_product_of_relative_risks(pc: float, pt: float) -> None:
    rr = M.relative_risk(pc, pt)
    rr_star = M.other_relative_risk(pc, pt)
    assert math.isclose(float(rr * rr_star), float(M.odds_ratio(pc, pt)), rel_tol=1e-12, abs_tol=0.0)


@seed(0)
@settings(max_examples=100)
@given(open_unit)
def test_stratum_compared_with_itself_has_no_stronger_measure(p: float) -> None:
    s = M.Stratum(p, p)
    assert not np.any(s.effect_measures() > s.effect_measures())
