"""
strandly/engine/damage.py
─────────────────────────
Damage Scorer: deterministic point scoring of chemical, heat, mechanical
and environmental stress into a damage level.

All weights and cutpoints live in one DamageScoringConfig. Callers pass a
config explicitly or get DEFAULT_SCORING; nothing else in the codebase
carries its own copy of these numbers.

Canonical table
───────────────
bleaching 3 · heat styling daily 3 · heat styling frequent 2 · coloring 1
chemical relaxing 3 · excessive breakage 4 · moderate breakage 2
high sun exposure 1 · frequent chlorine 2
unnamed chemical treatments frequent 4 · occasional 2 (only when no
bleaching, coloring or relaxing was named)

Levels: score > 8 severe, > 4 moderate, > 0 minimal, otherwise healthy.
"""

from enum import Enum
from typing import Dict, List, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator

from strandly.engine.profile import (
    Breakage,
    ChemicalFrequency,
    DamageIndicator,
    HairProfile,
    HeatFrequency,
)


class DamageLevel(str, Enum):
    HEALTHY = "healthy"
    MINIMAL = "minimal"
    MODERATE = "moderate"
    SEVERE = "severe"


DAMAGE_PRIORITIES: Dict[DamageLevel, str] = {
    DamageLevel.SEVERE: "immediate attention required",
    DamageLevel.MODERATE: "should be addressed",
    DamageLevel.MINIMAL: "maintain current care",
    DamageLevel.HEALTHY: "maintain current care",
}


class DamageWeights(BaseModel):
    model_config = ConfigDict(frozen=True)

    bleaching: int = Field(default=3, ge=0)
    heat_daily: int = Field(default=3, ge=0)
    heat_frequent: int = Field(default=2, ge=0)
    coloring: int = Field(default=1, ge=0)
    chemical_relaxing: int = Field(default=3, ge=0)
    chemical_frequent: int = Field(default=4, ge=0)
    chemical_occasional: int = Field(default=2, ge=0)
    breakage_excessive: int = Field(default=4, ge=0)
    breakage_moderate: int = Field(default=2, ge=0)
    sun_exposure_high: int = Field(default=1, ge=0)
    chlorine_frequent: int = Field(default=2, ge=0)


class DamageThresholds(BaseModel):
    """Exclusive lower bounds: a score strictly above ``severe_above`` is severe."""

    model_config = ConfigDict(frozen=True)

    severe_above: int = 8
    moderate_above: int = 4
    minimal_above: int = 0

    @model_validator(mode="after")
    def cutpoints_descend(self) -> "DamageThresholds":
        if not (self.severe_above > self.moderate_above > self.minimal_above >= 0):
            raise ValueError(
                "Damage thresholds must satisfy severe_above > moderate_above > minimal_above >= 0"
            )
        return self


class DamageScoringConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    weights: DamageWeights = Field(default_factory=DamageWeights)
    thresholds: DamageThresholds = Field(default_factory=DamageThresholds)


DEFAULT_SCORING = DamageScoringConfig()


class DamageAssessment(BaseModel):
    model_config = ConfigDict(frozen=True)

    score: int = Field(ge=0)
    level: DamageLevel
    contributing_factors: Tuple[str, ...] = ()
    priority: str = ""


def classify(score: int, thresholds: DamageThresholds = DEFAULT_SCORING.thresholds) -> DamageLevel:
    """Map a damage score to its level."""
    if score > thresholds.severe_above:
        return DamageLevel.SEVERE
    if score > thresholds.moderate_above:
        return DamageLevel.MODERATE
    if score > thresholds.minimal_above:
        return DamageLevel.MINIMAL
    return DamageLevel.HEALTHY


def _heat_weight(profile: HairProfile, weights: DamageWeights) -> int:
    if DamageIndicator.HEAT_STYLING not in profile.damage_indicators:
        return 0
    if profile.heat_frequency == HeatFrequency.FREQUENT:
        return weights.heat_frequent
    if profile.heat_frequency == HeatFrequency.OCCASIONAL:
        return 0
    # Heat styling reported without a frequency scores as daily.
    return weights.heat_daily


def _chemical_frequency_weight(profile: HairProfile, weights: DamageWeights) -> int:
    # Named treatments already carry their own weights.
    if profile.chemical_history:
        return 0
    return {
        ChemicalFrequency.FREQUENT: weights.chemical_frequent,
        ChemicalFrequency.OCCASIONAL: weights.chemical_occasional,
    }.get(profile.chemical_frequency, 0)


def score(profile: HairProfile, config: DamageScoringConfig = DEFAULT_SCORING) -> DamageAssessment:
    """Score a profile's stress indicators. Pure and total over HairProfile."""
    weights = config.weights
    indicators = profile.damage_indicators

    points: List[Tuple[str, int]] = [
        ("bleaching", weights.bleaching if DamageIndicator.BLEACHING in indicators else 0),
        ("heat_styling", _heat_weight(profile, weights)),
        ("coloring", weights.coloring if DamageIndicator.COLORING in indicators else 0),
        (
            "chemical_relaxing",
            weights.chemical_relaxing if DamageIndicator.CHEMICAL_RELAXING in indicators else 0,
        ),
        ("chemical_treatments", _chemical_frequency_weight(profile, weights)),
        (
            "breakage",
            {
                Breakage.EXCESSIVE: weights.breakage_excessive,
                Breakage.MODERATE: weights.breakage_moderate,
            }.get(profile.breakage, 0),
        ),
        (
            "sun_exposure",
            weights.sun_exposure_high if "high_sun_exposure" in profile.lifestyle_factors else 0,
        ),
        (
            "chlorine_exposure",
            weights.chlorine_frequent if "frequent_chlorine" in profile.lifestyle_factors else 0,
        ),
    ]

    total = sum(p for _, p in points)
    level = classify(total, config.thresholds)
    return DamageAssessment(
        score=total,
        level=level,
        contributing_factors=tuple(sorted(name for name, p in points if p > 0)),
        priority=DAMAGE_PRIORITIES[level],
    )
