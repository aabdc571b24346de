"""
Study configuration: reference defaults and YAML loading.

Reference values (single source of truth): 10000 entities, 10 attributes
with linear mean 2 and sd 1, five noise regimes (inverse, sqrt, constant
0.125 / 0.25 / 1), mixed weight 5, slices all / top 10% / top 1%, seed 13.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List

import yaml

from ..aggregation import COMBINATION_RULES
from ..ground_truth import DEFAULT_MIXED_WEIGHT, build_definitions
from ..invariant_runtime import InvalidParameter
from ..metrics.slices import DEFAULT_SLICES, PopulationSlice, slice_from_dict
from ..noise import DEFAULT_REGIMES, NoiseRegime, regime_from_dict
from ..population import PopulationConfig

DEFAULT_SEED = 13
DEFAULT_RULES = ["sum", "product"]
DEFAULT_DEFINITIONS = ["product", "mixed"]
# Bootstrap resamples per replicate comparison.
DEFAULT_BOOTSTRAP_SAMPLES = 1000


@dataclass
class StudyConfig:
    n_entities: int = 10000
    n_attributes: int = 10
    attribute_mean: float = 2.0
    attribute_sd: float = 1.0
    noise_regimes: List[NoiseRegime] = field(default_factory=lambda: list(DEFAULT_REGIMES))
    mixed_weight: float = DEFAULT_MIXED_WEIGHT
    slices: List[PopulationSlice] = field(default_factory=lambda: list(DEFAULT_SLICES))
    rules: List[str] = field(default_factory=lambda: list(DEFAULT_RULES))
    definitions: List[str] = field(default_factory=lambda: list(DEFAULT_DEFINITIONS))
    seed: int = DEFAULT_SEED
    scenario_name: str = ""
    log_level: str = "INFO"

    def population(self) -> PopulationConfig:
        return PopulationConfig(
            n_entities=int(self.n_entities),
            n_attributes=int(self.n_attributes),
            attribute_mean=float(self.attribute_mean),
            attribute_sd=float(self.attribute_sd),
        )

    def validate(self) -> None:
        self.population().validate()
        if self.attribute_mean <= 0.0 or self.attribute_sd <= 0.0:
            raise InvalidParameter(
                "config.attribute_distribution",
                "attribute mean and sd must be positive",
                {"mean": self.attribute_mean, "sd": self.attribute_sd},
            )
        if self.mixed_weight <= 0.0:
            raise InvalidParameter("config.mixed_weight", "mixed weight must be positive", {"weight": self.mixed_weight})
        if not self.noise_regimes:
            raise InvalidParameter("config.noise_regimes", "at least one noise regime is required")
        regime_names = [r.name for r in self.noise_regimes]
        if len(set(regime_names)) != len(regime_names):
            raise InvalidParameter("config.noise_regimes", "noise regime names must be unique", {"names": regime_names})
        names = [s.name for s in self.slices]
        if not names or len(set(names)) != len(names):
            raise InvalidParameter("config.slices", "slice names must be non-empty and unique", {"names": names})
        unknown_rules = [r for r in self.rules if r not in COMBINATION_RULES]
        if not self.rules or unknown_rules:
            raise InvalidParameter("config.rules", "unknown or empty combination rules", {"unknown": unknown_rules})
        known_defs = build_definitions(self.mixed_weight)
        unknown_defs = [d for d in self.definitions if d not in known_defs]
        if not self.definitions or unknown_defs:
            raise InvalidParameter("config.definitions", "unknown or empty true rating definitions", {"unknown": unknown_defs})

    def with_seed(self, seed: int) -> "StudyConfig":
        return replace(self, seed=int(seed))

    def derived_scenario_name(self) -> str:
        """Stable scenario name if none is configured."""

        if self.scenario_name:
            return str(self.scenario_name)
        return f"sumprod_n{self.n_entities}_k{self.n_attributes}_seed{self.seed}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "n_entities": self.n_entities,
            "n_attributes": self.n_attributes,
            "attribute_mean": self.attribute_mean,
            "attribute_sd": self.attribute_sd,
            "noise_regimes": [r.to_dict() for r in self.noise_regimes],
            "mixed_weight": self.mixed_weight,
            "slices": [{"name": s.name, "fraction": s.fraction} for s in self.slices],
            "rules": list(self.rules),
            "definitions": list(self.definitions),
            "seed": self.seed,
            "scenario_name": self.scenario_name,
            "log_level": self.log_level,
        }


def config_from_dict(cfg: Dict[str, Any]) -> StudyConfig:
    """Build a StudyConfig from a nested mapping; missing keys keep defaults."""

    cfg = cfg or {}
    pop = cfg.get("population", {})
    study = StudyConfig()
    if "n_entities" in pop:
        study.n_entities = int(pop["n_entities"])
    if "n_attributes" in pop:
        study.n_attributes = int(pop["n_attributes"])
    if "attribute_mean" in pop:
        study.attribute_mean = float(pop["attribute_mean"])
    if "attribute_sd" in pop:
        study.attribute_sd = float(pop["attribute_sd"])
    if cfg.get("noise_regimes"):
        study.noise_regimes = [regime_from_dict(r) for r in cfg["noise_regimes"]]
    truth = cfg.get("ground_truth", {})
    if "mixed_weight" in truth:
        study.mixed_weight = float(truth["mixed_weight"])
    if truth.get("definitions"):
        study.definitions = [str(d) for d in truth["definitions"]]
    if cfg.get("rules"):
        study.rules = [str(r) for r in cfg["rules"]]
    if cfg.get("slices"):
        study.slices = [slice_from_dict(s) for s in cfg["slices"]]
    if "seed" in cfg:
        study.seed = int(cfg["seed"])
    study.scenario_name = str(cfg.get("scenario_name", "") or "")
    study.log_level = str(cfg.get("logging", {}).get("level", study.log_level)).upper()
    study.validate()
    return study


def load_study_config(path: str) -> StudyConfig:
    with open(path, "r", encoding="utf-8") as f:
        return config_from_dict(yaml.safe_load(f) or {})
