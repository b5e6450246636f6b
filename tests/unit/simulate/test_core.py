import numpy as np
import pandas as pd
import pytest

from emm.simulate import codes as C
from emm.simulate import core
from emm.simulate.config import InvalidConfiguration, SimConfig


def _cfg(**overrides):
    base = dict(trial_count=20_000, tent_mode=False, seed=2021, batch_size=4096)
    base.update(overrides)
    return SimConfig(**base)


def test_same_seed_gives_identical_tallies():
    cfg = SimConfig(lower_bound=0.0, upper_bound=1.0, trial_count=100_000, tent_mode=False, seed=11)
    a = core.run_simulation(cfg)
    b = core.run_simulation(cfg)
    assert np.array_equal(a.counts, b.counts)
    assert a.seed == b.seed == 11


def test_different_seeds_differ():
    a = core.run_simulation(_cfg(seed=1))
    b = core.run_simulation(_cfg(seed=2))
    assert not np.array_equal(a.counts, b.counts)


def test_unseeded_run_records_its_seed_and_can_be_replayed():
    a = core.run_simulation(_cfg(seed=None, trial_count=2000))
    assert isinstance(a.seed, int)
    b = core.run_simulation(_cfg(seed=a.seed, trial_count=2000))
    assert np.array_equal(a.counts, b.counts)


@pytest.mark.parametrize("tent_mode", [True, False])
def test_empty_and_singleton_subsets_count_every_trial(tent_mode):
    t = core.run_simulation(_cfg(tent_mode=tent_mode))
    assert t.counts[0] == t.trial_count
    for k in range(6):
        assert t.counts[1 << k] == t.trial_count
    assert t.probability("") == 1.0
    assert t.probability("a") == 1.0


@pytest.mark.parametrize("tent_mode", [True, False])
def test_agreement_probability_is_monotone_in_subset(tent_mode):
    t = core.run_simulation(_cfg(tent_mode=tent_mode))
    assert t.probability("abcdef") <= t.probability("a")
    for sub in range(64):
        for sup in range(64):
            if sub & sup == sub:
                assert t.counts[sub] >= t.counts[sup]


def test_full_agreement_is_neither_certain_nor_impossible():
    t = core.run_simulation(_cfg())
    p = t.probability("abcdef")
    assert 0.0 < p < 1.0


def test_parallel_workers_match_serial():
    serial = core.run_simulation(_cfg(trial_count=6000, batch_size=1000, tent_mode=True))
    parallel = core.run_simulation(_cfg(trial_count=6000, batch_size=1000, tent_mode=True, n_workers=2))
    assert np.array_equal(serial.counts, parallel.counts)


def test_uneven_last_batch_is_counted():
    t = core.run_simulation(_cfg(trial_count=2500, batch_size=1000))
    assert t.counts[0] == 2500


def test_tally_batch_matches_single_batch_run():
    cfg = _cfg(trial_count=3000, batch_size=3000)
    direct = core.tally_batch(cfg, seed=2021, batch_index=0, size=3000)
    assert np.array_equal(direct, core.run_simulation(cfg).counts)


def test_simulate_tallies_wrapper():
    t = core.simulate_tallies(1000, tent_mode=False, seed=5, upper_bound=0.1)
    assert t.trial_count == 1000
    assert t.config["upper_bound"] == 0.1
    with pytest.raises(InvalidConfiguration):
        core.simulate_tallies(0)


def test_tally_is_read_only_and_validated():
    t = core.run_simulation(_cfg(trial_count=500))
    with pytest.raises(ValueError):
        t.counts[3] = 0
    with pytest.raises(ValueError, match="shape"):
        core.AgreementTally(counts=np.zeros(10, dtype=int), trial_count=1)
    with pytest.raises(ValueError, match="counts must lie"):
        core.AgreementTally(counts=np.full(64, 5), trial_count=2)


def test_probability_of_mask_matches_code_query():
    t = core.run_simulation(_cfg(trial_count=5000))
    for mask in range(64):
        assert t.probability_of_mask(mask) == t.probability(C.code_of(mask))
    assert np.allclose(t.probabilities(), t.counts / 5000)


def test_to_frame_and_summary():
    t = core.run_simulation(_cfg(trial_count=5000))
    df = t.to_frame()
    assert isinstance(df, pd.DataFrame)
    assert len(df) == 64
    assert list(df["bitmask"]) == list(range(64))
    assert df.loc[63, "code"] == "abcdef"
    assert df.loc[32, "measures"] == "RR"

    summary = core.summarize_tally(t)
    assert list(summary["subset_size"]) == list(range(7))
    assert list(summary["n_subsets"]) == [1, 6, 15, 20, 15, 6, 1]
    assert summary.loc[0, "probability_mean"] == 1.0
    assert summary.loc[1, "probability_min"] == 1.0
    assert (summary["probability_min"] <= summary["probability_max"]).all()


def test_as_dict_roundtrips_counts():
    t = core.run_simulation(_cfg(trial_count=100))
    d = t.as_dict()
    assert d["trial_count"] == 100
    assert len(d["counts"]) == 64
    assert d["config"]["tent_mode"] is False
