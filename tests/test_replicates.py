import pytest

from sumprod.experiments.replicates import run_replicates
from sumprod.experiments.study_config import StudyConfig


@pytest.fixture(scope="module")
def replicates():
    return run_replicates(StudyConfig(n_entities=1000), n_replicates=3, base_seed=100)


def test_replicates_stack_and_aggregate(replicates):
    assert replicates.seeds == [100, 101, 102]
    assert len(replicates.per_replicate) == 3 * 60
    assert len(replicates.aggregated) == 60
    assert (replicates.aggregated["n_replicates"] == 3).all()


def test_rule_and_noise_comparisons(replicates):
    tests = replicates.tests
    rule = tests[tests["family"] == "rule"]
    noise = tests[tests["family"] == "noise"]
    assert len(rule) == 2 * 5 * 3
    assert len(noise) == 2 * 2 * 3
    assert (tests["p_holm"] >= tests["p_value"]).all()
    assert (tests["p_bonferroni"] >= tests["p_holm"]).all()

    cell = rule[(rule["definition"] == "product") & (rule["regime"] == "constant-0.125") & (rule["slice"] == "all")]
    assert cell["diff_mean"].iloc[0] < 0.0

    cell = noise[(noise["definition"] == "product") & (noise["rule"] == "product") & (noise["slice"] == "all")]
    assert cell["compared"].iloc[0] == "constant-1"
    assert cell["baseline"].iloc[0] == "constant-0.125"
    assert cell["diff_mean"].iloc[0] > 0.0


def test_replicates_reject_zero():
    with pytest.raises(ValueError):
        run_replicates(StudyConfig(n_entities=100), n_replicates=0)
