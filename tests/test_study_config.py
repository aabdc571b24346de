from pathlib import Path

import pytest
import yaml

from sumprod.experiments.study_config import StudyConfig, config_from_dict, load_study_config
from sumprod.invariant_runtime import InvalidParameter

REPO_ROOT = Path(__file__).resolve().parents[1]


def test_default_yaml_matches_reference_defaults():
    cfg = load_study_config(str(REPO_ROOT / "config" / "default_study.yaml"))
    ref = StudyConfig()
    assert cfg.n_entities == ref.n_entities == 10000
    assert cfg.n_attributes == ref.n_attributes == 10
    assert cfg.seed == ref.seed == 13
    assert cfg.mixed_weight == ref.mixed_weight == 5.0
    assert [r.name for r in cfg.noise_regimes] == [r.name for r in ref.noise_regimes]
    assert [(s.name, s.fraction) for s in cfg.slices] == [(s.name, s.fraction) for s in ref.slices]
    assert cfg.log_level == "INFO"


def test_load_partial_yaml_keeps_defaults(tmp_path):
    path = tmp_path / "study.yaml"
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump({"seed": 99, "population": {"n_entities": 500}, "logging": {"level": "debug"}}, f)
    cfg = load_study_config(str(path))
    assert cfg.seed == 99
    assert cfg.n_entities == 500
    assert cfg.n_attributes == 10
    assert len(cfg.noise_regimes) == 5
    assert cfg.log_level == "DEBUG"
    assert cfg.derived_scenario_name() == "sumprod_n500_k10_seed99"


@pytest.mark.parametrize(
    "raw",
    [
        {"population": {"n_entities": 0}},
        {"population": {"attribute_sd": 0.0}},
        {"ground_truth": {"mixed_weight": -1.0}},
        {"rules": ["median"]},
        {"ground_truth": {"definitions": ["additive"]}},
        {"slices": [{"name": "all", "fraction": 1.0}, {"name": "all", "fraction": 0.1}]},
        {"slices": [{"name": "none", "fraction": 0.0}]},
        {"noise_regimes": [{"kind": "constant"}]},
    ],
)
def test_invalid_configs_are_rejected(raw):
    with pytest.raises(InvalidParameter):
        config_from_dict(raw)


def test_with_seed_returns_copy():
    cfg = StudyConfig(n_entities=100)
    other = cfg.with_seed(7)
    assert other.seed == 7
    assert cfg.seed == 13
    assert other.n_entities == 100


def test_to_dict_round_trips_through_config_from_dict():
    cfg = StudyConfig(n_entities=123, seed=5, scenario_name="x")
    raw = cfg.to_dict()
    rebuilt = config_from_dict(
        {
            "population": {k: raw[k] for k in ("n_entities", "n_attributes", "attribute_mean", "attribute_sd")},
            "noise_regimes": raw["noise_regimes"],
            "ground_truth": {"mixed_weight": raw["mixed_weight"], "definitions": raw["definitions"]},
            "rules": raw["rules"],
            "slices": raw["slices"],
            "seed": raw["seed"],
            "scenario_name": raw["scenario_name"],
        }
    )
    assert rebuilt.to_dict() == raw
