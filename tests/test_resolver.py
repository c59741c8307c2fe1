"""
Recommendation Resolver Tests

Tests validate:
- All four categories always present
- Suitability filtering and avoid_if exclusion
- Ranking law and per-category limit
- In-band coverage gaps
- Interaction checks and safety warnings
- Routine cadence
- Idempotence and JSON round-trip
"""

from typing import List

import pytest

from strandly.engine.catalog import Catalog, KnowledgeBase, ProductRecord
from strandly.engine.damage import DamageAssessment, DamageLevel, score
from strandly.engine.profile import normalize
from strandly.engine.resolver import (
    INSUFFICIENT_CATALOG_COVERAGE,
    WASH_FREQUENCY_BASELINE,
    WASH_FREQUENCY_INCREASED,
    WASH_FREQUENCY_REDUCED,
    RecommendationBundle,
    RecommendationCategory,
    build_routine,
    check_interactions,
    hair_tokens,
    rank,
    resolve,
)


def make_product(product_id: str, category: str = "shampoo", **overrides) -> ProductRecord:
    fields = {
        "id": product_id,
        "name": product_id,
        "brand": "Test",
        "category": category,
        "price_min": 10.0,
        "price_max": 10.0,
        "rating": 4.0,
        "review_count": 100,
    }
    fields.update(overrides)
    return ProductRecord(**fields)


def make_catalog(products: List[ProductRecord]) -> Catalog:
    return Catalog(version="test", products=tuple(products))


def run(answers, catalog, knowledge_base, limit=3) -> RecommendationBundle:
    profile = normalize(answers)
    return resolve(profile, score(profile), catalog, knowledge_base, limit=limit)


PROFILES = [
    {},
    {"texture": "curly", "porosity": "high", "damage_indicators": "none"},
    {"hairType": "4c", "porosity": "low", "scalp_type": "oily, sensitive"},
    {"damage_indicators": ["bleaching", "heat_styling", "chemical_relaxing"], "breakage": "excessive"},
]


class TestCategories:
    @pytest.mark.parametrize("answers", PROFILES)
    def test_all_four_categories_present(self, answers, catalog, knowledge_base):
        bundle = run(answers, catalog, knowledge_base)
        dumped = bundle.model_dump(mode="json")

        for category in RecommendationCategory:
            assert category.value in dumped
            assert category in bundle.category_flags

    @pytest.mark.parametrize("answers", PROFILES)
    def test_seed_catalog_covers_every_category(self, answers, catalog, knowledge_base):
        bundle = run(answers, catalog, knowledge_base)

        assert bundle.coverage_gaps == []
        for category in RecommendationCategory:
            assert 1 <= len(bundle.products(category)) <= 3

    def test_limit(self, catalog, knowledge_base):
        bundle = run({}, catalog, knowledge_base, limit=1)

        for category in RecommendationCategory:
            assert len(bundle.products(category)) <= 1

    def test_catalog_version_carried(self, catalog, knowledge_base):
        assert run({}, catalog, knowledge_base).catalog_version == catalog.version


class TestCoverageGap:
    def test_no_styling_for_high_porosity_4c(self, knowledge_base):
        catalog = make_catalog(
            [
                make_product("wash"),
                make_product("rinse", "conditioner"),
                make_product("mask", "treatment"),
                make_product("low_only_gel", "styling", porosity_types=["low"]),
                make_product("straight_only_spray", "styling", hair_types=["straight"]),
            ]
        )

        bundle = run({"curl_pattern": "4c", "porosity": "high"}, catalog, knowledge_base)

        assert bundle.styling == []
        assert bundle.has_coverage_gap(RecommendationCategory.STYLING)
        assert bundle.category_flags[RecommendationCategory.STYLING] == [INSUFFICIENT_CATALOG_COVERAGE]
        assert bundle.coverage_gaps == [RecommendationCategory.STYLING]

    def test_empty_catalog_flags_every_category(self, knowledge_base):
        bundle = run({}, make_catalog([]), knowledge_base)

        assert bundle.coverage_gaps == list(RecommendationCategory)


class TestSuitability:
    def test_avoid_if_excludes_product(self, catalog, knowledge_base):
        bundle = run({"porosity": "low"}, catalog, knowledge_base)

        assert "moroccanoil_treatment_oil" not in [p.id for p in bundle.styling]

    def test_avoid_if_requires_every_constraint(self, knowledge_base):
        product = make_product(
            "picky",
            avoid_if=[{"reason": "low porosity, healthy", "porosity": ["low"], "damage_levels": ["healthy"]}],
        )
        catalog = make_catalog([product])

        healthy_low = run({"porosity": "low"}, catalog, knowledge_base)
        damaged_low = run({"porosity": "low", "damage_indicators": ["bleaching", "coloring", "relaxer"]}, catalog, knowledge_base)

        assert healthy_low.cleansing == []
        assert [p.id for p in damaged_low.cleansing] == ["picky"]

    def test_hair_type_tokens_include_curl_and_thickness(self):
        profile = normalize({"curl_pattern": "3a", "thickness": "fine"})
        damage = DamageAssessment(score=6, level=DamageLevel.MODERATE)

        assert hair_tokens(profile, damage) == frozenset({"3a", "curly", "fine", "damaged"})

    def test_scalp_filter(self, knowledge_base):
        catalog = make_catalog([make_product("oily_only", scalp_types=["oily"])])

        assert run({"scalp_type": "dry"}, catalog, knowledge_base).cleansing == []
        assert run({"scalp_type": "oily"}, catalog, knowledge_base).cleansing


class TestRanking:
    def test_rating_then_reviews_then_price_then_id(self):
        products = [
            make_product("d", rating=4.5, review_count=100, price_min=20.0, price_max=20.0),
            make_product("c", rating=4.5, review_count=100, price_min=10.0, price_max=10.0),
            make_product("b", rating=4.5, review_count=900),
            make_product("a", rating=4.9, review_count=1),
            make_product("e", rating=4.5, review_count=100, price_min=10.0, price_max=10.0),
        ]

        assert [p.id for p in rank(products)] == ["a", "b", "c", "e", "d"]

    def test_resolver_applies_ranking(self, catalog, knowledge_base):
        bundle = run({}, catalog, knowledge_base)

        for category in RecommendationCategory:
            products = bundle.products(category)
            assert products == rank(products)


class TestInteractions:
    def test_protein_overload(self, knowledge_base):
        selected = [
            make_product("p1", key_ingredients=["Keratin"]),
            make_product("p2", key_ingredients=["Hydrolyzed Wheat Protein"]),
        ]

        flags = check_interactions(selected, knowledge_base)

        assert [f.id for f in flags] == ["protein_overload"]
        assert flags[0].products == ["p1", "p2"]

    def test_single_protein_product_is_fine(self, knowledge_base):
        assert check_interactions([make_product("p1", key_ingredients=["Keratin"])], knowledge_base) == []

    def test_moisture_overload_needs_no_protein(self, knowledge_base):
        moisture = [make_product(f"m{i}", key_ingredients=["Glycerin"]) for i in range(4)]

        assert [f.id for f in check_interactions(moisture, knowledge_base)] == ["moisture_overload"]

        balanced = moisture + [make_product("p1", key_ingredients=["Keratin"])]
        assert check_interactions(balanced, knowledge_base) == []

    def test_safety_warnings_collected(self, knowledge_base):
        catalog = make_catalog(
            [
                make_product(
                    "harsh",
                    key_ingredients=["Sodium Lauryl Sulfate"],
                    safety_warnings=["Patch test before first use"],
                )
            ]
        )

        bundle = run({}, catalog, knowledge_base)

        assert "Patch test before first use" in bundle.safety_warnings
        assert "Sulfate cleansers can fade color and irritate sensitive scalps" in bundle.safety_warnings
        assert bundle.safety_warnings == sorted(bundle.safety_warnings)

    def test_interaction_warning_surfaces_in_safety_warnings(self, knowledge_base):
        catalog = make_catalog(
            [
                make_product("p1", key_ingredients=["Keratin"]),
                make_product("p2", "conditioner", key_ingredients=["Keratin"]),
            ]
        )

        bundle = run({}, catalog, knowledge_base)

        assert "Multiple protein sources can cause brittleness" in bundle.safety_warnings


class TestRoutine:
    def test_severe_damage_reduces_washing(self):
        profile = normalize({"damage_indicators": ["bleaching", "heat"], "breakage": "excessive", "scalp_type": "oily"})

        routine = build_routine(profile, score(profile))

        assert routine.wash_frequency == WASH_FREQUENCY_REDUCED
        assert "Protein treatment" in routine.weekly

    def test_oily_scalp_increases_washing(self):
        profile = normalize({"scalp_type": "oily"})

        assert build_routine(profile, score(profile)).wash_frequency == WASH_FREQUENCY_INCREASED

    def test_baseline(self):
        profile = normalize({})

        routine = build_routine(profile, score(profile))

        assert routine.wash_frequency == WASH_FREQUENCY_BASELINE
        assert routine.daily

    def test_hard_water_adds_clarifying(self):
        profile = normalize({"lifestyle": ["hard water"]})

        monthly = build_routine(profile, score(profile)).monthly

        assert "Clarifying treatment to remove mineral buildup" in monthly


class TestDeterminism:
    @pytest.mark.parametrize("answers", PROFILES)
    def test_idempotent(self, answers, catalog, knowledge_base):
        first = run(answers, catalog, knowledge_base)
        second = run(answers, catalog, knowledge_base)

        assert first.model_dump_json() == second.model_dump_json()

    @pytest.mark.parametrize("answers", PROFILES)
    def test_json_round_trip(self, answers, catalog, knowledge_base):
        bundle = run(answers, catalog, knowledge_base)

        restored = RecommendationBundle.model_validate_json(bundle.model_dump_json())

        for category in RecommendationCategory:
            assert [p.id for p in restored.products(category)] == [p.id for p in bundle.products(category)]
        assert set(restored.safety_warnings) == set(bundle.safety_warnings)
        assert restored.category_flags == bundle.category_flags
        assert restored.routine == bundle.routine
