"""
strandly/engine/resolver.py
───────────────────────────
Recommendation Resolver: matches a HairProfile against the catalog and
ingredient knowledge base.

Pipeline per category
─────────────────────
1. Suitability filter (hair tokens, porosity, scalp, damage level).
2. avoid_if exclusion.
3. Rank: rating desc → review_count desc → price_min asc → id asc.
4. Keep the top N.

Then, across every selected product: ingredient lookup, safety warning
aggregation, interaction checks and routine cadence.

resolve() is pure. An empty category is reported in-band with the
``insufficient_catalog_coverage`` flag instead of raising.
"""

import logging
from enum import Enum
from typing import Dict, FrozenSet, List, Sequence, Set

from pydantic import BaseModel, ConfigDict, Field

from strandly.engine.catalog import (
    ALL,
    AvoidCondition,
    Catalog,
    InteractionAxis,
    KnowledgeBase,
    ProductCategory,
    ProductRecord,
)
from strandly.engine.damage import DamageAssessment, DamageLevel
from strandly.engine.profile import DamageIndicator, HairProfile, Porosity, ScalpCondition

logger = logging.getLogger(__name__)

DEFAULT_PRODUCTS_PER_CATEGORY = 3

INSUFFICIENT_CATALOG_COVERAGE = "insufficient_catalog_coverage"


class RecommendationCategory(str, Enum):
    CLEANSING = "cleansing"
    CONDITIONING = "conditioning"
    STYLING = "styling"
    TREATMENTS = "treatments"


CATEGORY_SOURCES: Dict[RecommendationCategory, ProductCategory] = {
    RecommendationCategory.CLEANSING: ProductCategory.SHAMPOO,
    RecommendationCategory.CONDITIONING: ProductCategory.CONDITIONER,
    RecommendationCategory.STYLING: ProductCategory.STYLING,
    RecommendationCategory.TREATMENTS: ProductCategory.TREATMENT,
}

WASH_FREQUENCY_REDUCED = "1-2 times per week"
WASH_FREQUENCY_INCREASED = "3-4 times per week"
WASH_FREQUENCY_BASELINE = "2-3 times per week"


class InteractionFlag(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    warning: str
    solution: str = ""
    signs: List[str] = Field(default_factory=list)
    products: List[str] = Field(default_factory=list)


class RoutineCadence(BaseModel):
    model_config = ConfigDict(frozen=True)

    wash_frequency: str
    daily: List[str] = Field(default_factory=list)
    weekly: List[str] = Field(default_factory=list)
    monthly: List[str] = Field(default_factory=list)


class RecommendationBundle(BaseModel):
    """Resolver output for one profile. Always carries all four categories."""

    model_config = ConfigDict(frozen=True)

    cleansing: List[ProductRecord] = Field(default_factory=list)
    conditioning: List[ProductRecord] = Field(default_factory=list)
    styling: List[ProductRecord] = Field(default_factory=list)
    treatments: List[ProductRecord] = Field(default_factory=list)
    category_flags: Dict[RecommendationCategory, List[str]] = Field(default_factory=dict)
    safety_warnings: List[str] = Field(default_factory=list)
    interactions: List[InteractionFlag] = Field(default_factory=list)
    routine: RoutineCadence
    catalog_version: str = ""

    def products(self, category: RecommendationCategory) -> List[ProductRecord]:
        return getattr(self, category.value)

    def has_coverage_gap(self, category: RecommendationCategory) -> bool:
        return INSUFFICIENT_CATALOG_COVERAGE in self.category_flags.get(category, [])

    @property
    def coverage_gaps(self) -> List[RecommendationCategory]:
        return [c for c in RecommendationCategory if self.has_coverage_gap(c)]


# ---------------------------------------------------------------------------
# Matching
# ---------------------------------------------------------------------------


def hair_tokens(profile: HairProfile, damage: DamageAssessment) -> FrozenSet[str]:
    """Tokens a product's ``hair_types`` set is matched against."""
    tokens = {profile.curl_pattern.lower(), profile.texture.value, profile.thickness.value}
    if damage.level in (DamageLevel.MODERATE, DamageLevel.SEVERE):
        tokens.add("damaged")
    return frozenset(tokens)


def _accepts(allowed: FrozenSet[str], values: FrozenSet[str]) -> bool:
    return ALL in allowed or bool(allowed & values)


def is_suitable(product: ProductRecord, profile: HairProfile, damage: DamageAssessment) -> bool:
    scalp = frozenset(s.value for s in profile.scalp_type)
    return (
        _accepts(product.hair_types, hair_tokens(profile, damage))
        and _accepts(product.porosity_types, frozenset({profile.porosity.value}))
        and _accepts(product.scalp_types, scalp)
        and _accepts(product.damage_levels, frozenset({damage.level.value}))
    )


def avoid_condition_matches(
    condition: AvoidCondition, profile: HairProfile, damage: DamageAssessment
) -> bool:
    checks: List[bool] = []
    if condition.textures:
        checks.append(profile.texture.value in condition.textures)
    if condition.thickness:
        checks.append(profile.thickness.value in condition.thickness)
    if condition.porosity:
        checks.append(profile.porosity.value in condition.porosity)
    if condition.scalp_types:
        checks.append(bool({s.value for s in profile.scalp_type} & condition.scalp_types))
    if condition.damage_levels:
        checks.append(damage.level.value in condition.damage_levels)
    if condition.damage_indicators:
        checks.append(bool({d.value for d in profile.damage_indicators} & condition.damage_indicators))
    return bool(checks) and all(checks)


def is_avoided(product: ProductRecord, profile: HairProfile, damage: DamageAssessment) -> bool:
    return any(avoid_condition_matches(c, profile, damage) for c in product.avoid_if)


def rank(products: Sequence[ProductRecord]) -> List[ProductRecord]:
    """Order by rating desc, review_count desc, price_min asc; id breaks exact ties."""
    return sorted(products, key=lambda p: (-p.rating, -p.review_count, p.price_min, p.id))


def match_category(
    catalog: Catalog,
    category: RecommendationCategory,
    profile: HairProfile,
    damage: DamageAssessment,
    limit: int = DEFAULT_PRODUCTS_PER_CATEGORY,
) -> List[ProductRecord]:
    candidates = [
        p
        for p in catalog.by_category(CATEGORY_SOURCES[category])
        if is_suitable(p, profile, damage) and not is_avoided(p, profile, damage)
    ]
    return rank(candidates)[:limit]


# ---------------------------------------------------------------------------
# Ingredients, interactions, routine
# ---------------------------------------------------------------------------


def _product_axes(product: ProductRecord, knowledge_base: KnowledgeBase) -> Set[InteractionAxis]:
    axes: Set[InteractionAxis] = set()
    for ingredient in product.key_ingredients:
        record = knowledge_base.lookup(ingredient)
        if record is not None and record.axis is not None:
            axes.add(record.axis)
    return axes


def check_interactions(
    selected: Sequence[ProductRecord], knowledge_base: KnowledgeBase
) -> List[InteractionFlag]:
    carriers: Dict[InteractionAxis, List[str]] = {axis: [] for axis in InteractionAxis}
    for product in selected:
        for axis in _product_axes(product, knowledge_base):
            carriers[axis].append(product.id)

    flags: List[InteractionFlag] = []
    for rule in knowledge_base.interactions:
        products = carriers[rule.axis]
        if len(products) < rule.min_products:
            continue
        if rule.unless_axis is not None and carriers[rule.unless_axis]:
            continue
        flags.append(
            InteractionFlag(
                id=rule.id,
                warning=rule.warning,
                solution=rule.solution,
                signs=list(rule.signs),
                products=sorted(products),
            )
        )
    return flags


def collect_safety_warnings(
    selected: Sequence[ProductRecord],
    knowledge_base: KnowledgeBase,
    interactions: Sequence[InteractionFlag],
) -> List[str]:
    warnings: Set[str] = set()
    for product in selected:
        warnings.update(product.safety_warnings)
        for ingredient in product.key_ingredients:
            record = knowledge_base.lookup(ingredient)
            if record is not None:
                warnings.update(record.warnings)
    warnings.update(flag.warning for flag in interactions)
    return sorted(warnings)


def build_routine(profile: HairProfile, damage: DamageAssessment) -> RoutineCadence:
    daily = ["Gentle detangling with a wide-tooth comb"]
    weekly: List[str] = []
    monthly = ["Professional trim assessment"]

    if damage.level == DamageLevel.SEVERE:
        wash = WASH_FREQUENCY_REDUCED
        weekly += ["Protein treatment", "Oil treatment for ends"]
    elif ScalpCondition.OILY in profile.scalp_type:
        wash = WASH_FREQUENCY_INCREASED
        daily.append("Light scalp massage")
    else:
        wash = WASH_FREQUENCY_BASELINE

    weekly.insert(0, f"Shampoo {wash}, condition after each wash")
    if damage.level == DamageLevel.MODERATE:
        weekly.append("Deep conditioning mask")

    if DamageIndicator.HEAT_STYLING in profile.damage_indicators:
        daily.append("Heat protectant before any heat styling")
    if ScalpCondition.DRY in profile.scalp_type or profile.porosity == Porosity.HIGH:
        daily.append("Leave-in conditioner on mid-lengths and ends")
    if "hard_water" in profile.lifestyle_factors:
        monthly.append("Clarifying treatment to remove mineral buildup")

    return RoutineCadence(wash_frequency=wash, daily=daily, weekly=weekly, monthly=monthly)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def resolve(
    profile: HairProfile,
    damage: DamageAssessment,
    catalog: Catalog,
    knowledge_base: KnowledgeBase,
    limit: int = DEFAULT_PRODUCTS_PER_CATEGORY,
) -> RecommendationBundle:
    """Resolve a profile into a tiered recommendation bundle."""
    per_category: Dict[RecommendationCategory, List[ProductRecord]] = {}
    flags: Dict[RecommendationCategory, List[str]] = {}
    for category in RecommendationCategory:
        matched = match_category(catalog, category, profile, damage, limit)
        per_category[category] = matched
        flags[category] = [] if matched else [INSUFFICIENT_CATALOG_COVERAGE]
        if not matched:
            logger.warning(
                "No %s products match profile (texture=%s curl=%s porosity=%s) in catalog %s",
                category.value,
                profile.texture.value,
                profile.curl_pattern,
                profile.porosity.value,
                catalog.version,
            )

    selected = [p for products in per_category.values() for p in products]
    interactions = check_interactions(selected, knowledge_base)

    return RecommendationBundle(
        cleansing=per_category[RecommendationCategory.CLEANSING],
        conditioning=per_category[RecommendationCategory.CONDITIONING],
        styling=per_category[RecommendationCategory.STYLING],
        treatments=per_category[RecommendationCategory.TREATMENTS],
        category_flags=flags,
        safety_warnings=collect_safety_warnings(selected, knowledge_base, interactions),
        interactions=interactions,
        routine=build_routine(profile, damage),
        catalog_version=catalog.version,
    )
