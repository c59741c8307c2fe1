"""
strandly/engine/analysis.py
───────────────────────────
One complete analysis run: normalize → score → resolve → assess.

The result is what gets stored against a quiz submission and rendered
into the customer's report. Calling analyze() twice with the same answers
and catalog snapshot yields equal results.
"""

import logging
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict

from strandly.engine.catalog import Catalog, KnowledgeBase
from strandly.engine.confidence import ConfidenceReport, assess
from strandly.engine.damage import DEFAULT_SCORING, DamageAssessment, DamageScoringConfig, score
from strandly.engine.profile import HairProfile, normalize
from strandly.engine.resolver import DEFAULT_PRODUCTS_PER_CATEGORY, RecommendationBundle, resolve

logger = logging.getLogger(__name__)


class HairAnalysis(BaseModel):
    model_config = ConfigDict(frozen=True)

    profile: HairProfile
    damage: DamageAssessment
    recommendations: RecommendationBundle
    confidence: ConfidenceReport


def analyze(
    raw_answers: Mapping[str, Any],
    catalog: Catalog,
    knowledge_base: KnowledgeBase,
    scoring: DamageScoringConfig = DEFAULT_SCORING,
    products_per_category: int = DEFAULT_PRODUCTS_PER_CATEGORY,
) -> HairAnalysis:
    profile = normalize(raw_answers)
    damage = score(profile, scoring)
    bundle = resolve(profile, damage, catalog, knowledge_base, limit=products_per_category)
    confidence = assess(profile, damage)

    logger.info(
        "Analysis complete — damage=%s(%d) confidence=%d triggers=%d gaps=%s",
        damage.level.value,
        damage.score,
        confidence.overall_confidence,
        len(confidence.consultation_triggers),
        [c.value for c in bundle.coverage_gaps] or "none",
    )
    return HairAnalysis(profile=profile, damage=damage, recommendations=bundle, confidence=confidence)
