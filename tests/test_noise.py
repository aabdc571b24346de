import numpy as np
import pytest

from sumprod.invariant_runtime import InvalidParameter
from sumprod.noise import (
    DEFAULT_REGIMES,
    NoiseRegime,
    constant_regime,
    inject_all,
    inject_noise,
    regime_from_dict,
    regime_rng,
)

N_DRAWS = 200000


def _fixed_draws(regime: NoiseRegime, value: float, seed: int = 11) -> np.ndarray:
    true_matrix = np.full((N_DRAWS, 1), value)
    return inject_noise(np.random.default_rng(seed), true_matrix, regime)[:, 0]


def test_default_regime_names():
    assert [r.name for r in DEFAULT_REGIMES] == [
        "inverse-proportional",
        "sqrt-proportional",
        "constant-0.125",
        "constant-0.25",
        "constant-1",
    ]


@pytest.mark.parametrize(
    "regime, value, expected_sd",
    [
        (NoiseRegime("inverse-proportional", "inverse"), 2.0, 0.5),
        (NoiseRegime("sqrt-proportional", "sqrt"), 4.0, 2.0),
        (constant_regime(0.125), 2.0, 0.125),
        (constant_regime(0.25), 3.0, 0.25),
        (constant_regime(1.0), 2.0, 1.0),
        (constant_regime(1.0), 5.0, 1.0),
    ],
)
def test_noise_moment_matching(regime, value, expected_sd):
    draws = _fixed_draws(regime, value)
    assert np.all(draws > 0.0)
    assert abs(draws.mean() - value) < 0.01 * value
    assert abs(draws.std(ddof=1) - expected_sd) < 0.03 * expected_sd


def test_sqrt_regime_targets_square_root_not_value():
    # sd = sqrt(v) = 2 at v = 4; the alternative reading sd = v would give 4.
    draws = _fixed_draws(NoiseRegime("sqrt-proportional", "sqrt"), 4.0)
    assert abs(draws.std(ddof=1) - 2.0) < 0.1
    assert draws.std(ddof=1) < 3.0


def test_regime_sd_rules():
    v = np.array([0.5, 1.0, 4.0])
    assert NoiseRegime("inv", "inverse").sd(v).tolist() == [2.0, 1.0, 0.25]
    assert NoiseRegime("sq", "sqrt").sd(v).tolist() == [np.sqrt(0.5), 1.0, 2.0]
    assert constant_regime(0.25).sd(v).tolist() == [0.25, 0.25, 0.25]


@pytest.mark.parametrize("kwargs", [{"kind": "gaussian"}, {"kind": "constant"}, {"kind": "constant", "constant": 0.0}])
def test_regime_validation(kwargs):
    with pytest.raises(InvalidParameter):
        NoiseRegime(name="bad", **kwargs)


def test_regime_from_dict_names():
    assert regime_from_dict({"kind": "constant", "constant": 0.25}).name == "constant-0.25"
    assert regime_from_dict({"kind": "inverse"}).name == "inverse-proportional"
    assert regime_from_dict({"name": "custom", "kind": "sqrt"}).name == "custom"


def test_inject_noise_rejects_non_positive_truth():
    with pytest.raises(InvalidParameter):
        inject_noise(np.random.default_rng(0), np.array([[1.0, 0.0]]), constant_regime(1.0))


def test_inject_all_keys_and_independence_from_order():
    rng = np.random.default_rng(2)
    true_matrix = rng.lognormal(size=(200, 4))
    forward = inject_all(13, true_matrix, DEFAULT_REGIMES)
    backward = inject_all(13, true_matrix, list(reversed(DEFAULT_REGIMES)))
    assert forward.keys() == [r.name for r in DEFAULT_REGIMES]
    for name in forward.keys():
        assert forward[name].shape == true_matrix.shape
        assert np.array_equal(forward[name], backward[name])
    assert not np.array_equal(forward["constant-0.25"], forward["constant-1"])


def test_inject_all_matches_single_regime_stream():
    true_matrix = np.full((50, 3), 2.0)
    regime = constant_regime(0.25)
    observations = inject_all(21, true_matrix, [regime])
    alone = inject_noise(regime_rng(21, regime), true_matrix, regime)
    assert np.array_equal(observations[regime.name], alone)


def test_observation_addresses_attribute_and_regime():
    true_matrix = np.arange(1.0, 13.0).reshape(4, 3)
    observations = inject_all(1, true_matrix, DEFAULT_REGIMES[:2])
    col = observations.observation("sqrt-proportional", 2)
    assert col.shape == (4,)
    assert np.array_equal(col, observations["sqrt-proportional"][:, 2])
    assert "constant-1" not in observations
    assert len(observations) == 2
    assert [r.name for r in observations.regimes] == ["inverse-proportional", "sqrt-proportional"]


def test_inject_all_rejects_duplicate_names():
    with pytest.raises(InvalidParameter):
        inject_all(1, np.ones((2, 2)), [constant_regime(1.0), constant_regime(1.0)])
