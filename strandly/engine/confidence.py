"""
strandly/engine/confidence.py
─────────────────────────────
Confidence Assessor: scores how complete and reliable the quiz input was
and lists the conditions that warrant a professional consultation.

Scores reflect data completeness, not algorithmic accuracy. Triggers fire
independently of the overall score and every matching trigger is reported.
"""

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from strandly.engine.damage import DamageAssessment, DamageLevel
from strandly.engine.profile import CORE_FIELDS, HairProfile

MAX_SCALP_ISSUES = 3
MAX_CHEMICAL_TREATMENTS = 2
LIFESTYLE_FACTORS_FOR_FULL_CONTEXT = 3
DAMAGE_MISSING_SCORE = 50

TRANSPARENCY_NOTE = (
    "Confidence scores reflect data completeness and assessment reliability, "
    "not algorithmic accuracy claims"
)


class ConfidenceBand(str, Enum):
    HIGH = "high"
    GOOD = "good"
    MODERATE = "moderate"
    LIMITED = "limited"


BAND_INTERPRETATIONS: Dict[ConfidenceBand, str] = {
    ConfidenceBand.HIGH: (
        "High confidence - Comprehensive assessment allows for targeted recommendations"
    ),
    ConfidenceBand.GOOD: (
        "Good confidence - Sufficient information for reliable general recommendations"
    ),
    ConfidenceBand.MODERATE: (
        "Moderate confidence - Basic recommendations possible, additional assessment beneficial"
    ),
    ConfidenceBand.LIMITED: (
        "Limited confidence - Conservative recommendations, professional consultation advised"
    ),
}


class ConfidenceFactor(BaseModel):
    model_config = ConfigDict(frozen=True)

    factor: str
    score: int = Field(ge=0, le=100)
    impact: str


class ConsultationTrigger(BaseModel):
    model_config = ConfigDict(frozen=True)

    reason: str
    professional: str
    urgency: str


class ConfidenceReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    overall_confidence: int = Field(ge=0, le=100)
    band: ConfidenceBand
    interpretation: str
    factors: List[ConfidenceFactor] = Field(default_factory=list)
    consultation_triggers: List[ConsultationTrigger] = Field(default_factory=list)
    transparency_note: str = TRANSPARENCY_NOTE

    @property
    def needs_consultation(self) -> bool:
        return bool(self.consultation_triggers)


def band_for(score: float) -> ConfidenceBand:
    if score >= 90:
        return ConfidenceBand.HIGH
    if score >= 70:
        return ConfidenceBand.GOOD
    if score >= 50:
        return ConfidenceBand.MODERATE
    return ConfidenceBand.LIMITED


def _factors(profile: HairProfile) -> List[ConfidenceFactor]:
    supplied = sum(1 for field in CORE_FIELDS if profile.is_supplied(field))
    completeness = supplied / len(CORE_FIELDS) * 100

    if profile.is_supplied("damage_indicators"):
        damage = ConfidenceFactor(
            factor="Damage Assessment Available",
            score=100,
            impact="Critical for treatment recommendations",
        )
    else:
        damage = ConfidenceFactor(
            factor="Damage Assessment Missing",
            score=DAMAGE_MISSING_SCORE,
            impact="Conservative recommendations will be provided",
        )

    lifestyle = min(
        len(profile.lifestyle_factors) / LIFESTYLE_FACTORS_FOR_FULL_CONTEXT * 100, 100
    )

    return [
        ConfidenceFactor(
            factor="Core Assessment Completeness",
            score=round(completeness),
            impact="High - affects all recommendations",
        ),
        damage,
        ConfidenceFactor(
            factor="Lifestyle Context",
            score=round(lifestyle),
            impact="Affects product selection and routine timing",
        ),
    ]


def consultation_triggers(
    profile: HairProfile, damage: DamageAssessment, conflicting_answers: bool
) -> List[ConsultationTrigger]:
    triggers: List[ConsultationTrigger] = []

    if damage.level == DamageLevel.SEVERE:
        triggers.append(
            ConsultationTrigger(
                reason="Severe hair damage detected",
                professional="Licensed cosmetologist or trichologist",
                urgency="Recommended before starting intensive treatments",
            )
        )

    if len(profile.scalp_issues) > MAX_SCALP_ISSUES:
        triggers.append(
            ConsultationTrigger(
                reason="Persistent scalp issues reported",
                professional="Dermatologist",
                urgency="Address underlying scalp health first",
            )
        )

    if len(profile.chemical_history) > MAX_CHEMICAL_TREATMENTS:
        triggers.append(
            ConsultationTrigger(
                reason="Complex chemical processing history",
                professional="Professional colorist or stylist",
                urgency="Before additional chemical treatments",
            )
        )

    if conflicting_answers:
        triggers.append(
            ConsultationTrigger(
                reason="Conflicting self-assessment results",
                professional="Hair care professional for in-person evaluation",
                urgency="For accurate characteristic determination",
            )
        )

    return triggers


def assess(
    profile: HairProfile,
    damage: DamageAssessment,
    conflicting_answers: Optional[bool] = None,
) -> ConfidenceReport:
    """
    Score input completeness and collect consultation triggers.

    ``conflicting_answers`` overrides the flag detected during
    normalisation when given.
    """
    factors = _factors(profile)
    overall = round(sum(f.score for f in factors) / len(factors))
    band = band_for(overall)
    conflicts = profile.assessment_conflicts if conflicting_answers is None else conflicting_answers

    return ConfidenceReport(
        overall_confidence=overall,
        band=band,
        interpretation=BAND_INTERPRETATIONS[band],
        factors=factors,
        consultation_triggers=consultation_triggers(profile, damage, conflicts),
    )
