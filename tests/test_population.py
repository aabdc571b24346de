import numpy as np
import pytest

from sumprod.invariant_runtime import InvalidParameter
from sumprod.population import PopulationConfig, attribute_names, generate_population, rng_for_stream


def test_population_shape_and_positivity():
    cfg = PopulationConfig(n_entities=500, n_attributes=7)
    matrix = generate_population(rng_for_stream(13, 0), cfg)
    assert matrix.shape == (500, 7)
    assert np.all(matrix > 0.0)


def test_population_is_reproducible_for_a_seed():
    cfg = PopulationConfig(n_entities=300, n_attributes=4)
    a = generate_population(rng_for_stream(13, 0), cfg)
    b = generate_population(rng_for_stream(13, 0), cfg)
    c = generate_population(rng_for_stream(14, 0), cfg)
    assert np.array_equal(a, b)
    assert not np.array_equal(a, c)


def test_population_matches_target_moments():
    cfg = PopulationConfig(n_entities=20000, n_attributes=10, attribute_mean=2.0, attribute_sd=1.0)
    matrix = generate_population(rng_for_stream(5, 0), cfg)
    assert abs(matrix.mean() - 2.0) < 0.01
    assert abs(matrix.std() - 1.0) < 0.02


@pytest.mark.parametrize("kwargs", [{"n_entities": 0}, {"n_attributes": 0}, {"attribute_mean": 0.0}, {"attribute_sd": -1.0}])
def test_population_rejects_invalid_config(kwargs):
    with pytest.raises(InvalidParameter):
        generate_population(rng_for_stream(1, 0), PopulationConfig(**kwargs))


def test_attribute_names():
    assert attribute_names(3) == ["attr_0", "attr_1", "attr_2"]
