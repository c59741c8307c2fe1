"""
strandly/engine/catalog.py
──────────────────────────
Product Catalog and Ingredient Knowledge Base.

Both are static seed data (JSON under strandly/data/) validated into
frozen pydantic models when loaded. The default instances are loaded once
per process through the cached getters at the bottom of this module and
passed explicitly into the resolver; nothing here mutates after load.
"""

import logging
import re
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
    model_validator,
)

from strandly.core.config import get_settings

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).resolve().parent.parent / "data"
CATALOG_FILE = DATA_DIR / "catalog.json"
KNOWLEDGE_BASE_FILE = DATA_DIR / "ingredients.json"

# Wildcard token for suitability sets. "all-types" is the legacy spelling.
ALL = "all"
_WILDCARD_SPELLINGS = {"all", "all-types", "all_types", "any"}
_POROSITY_SPELLINGS = {"medium": "normal"}


class ProductCategory(str, Enum):
    SHAMPOO = "shampoo"
    CONDITIONER = "conditioner"
    TREATMENT = "treatment"
    STYLING = "styling"


class PriceTier(str, Enum):
    BUDGET = "budget"
    MID_RANGE = "mid_range"
    PREMIUM = "premium"
    LUXURY = "luxury"


PRICE_TIER_RANGES: Dict[PriceTier, str] = {
    PriceTier.BUDGET: "$5-15",
    PriceTier.MID_RANGE: "$15-40",
    PriceTier.PREMIUM: "$40-80",
    PriceTier.LUXURY: "$80+",
}


class InteractionAxis(str, Enum):
    PROTEIN = "protein"
    MOISTURE = "moisture"


def _token_set(value: Any, spellings: Optional[Dict[str, str]] = None) -> frozenset:
    """Lower-case a suitability list, folding wildcard spellings to ALL."""
    if value is None:
        return frozenset({ALL})
    if isinstance(value, str):
        value = [value]
    tokens = set()
    for item in value:
        token = str(item).strip().lower()
        if token in _WILDCARD_SPELLINGS:
            token = ALL
        elif spellings:
            token = spellings.get(token, token)
        if token:
            tokens.add(token)
    return frozenset(tokens or {ALL})


def ingredient_key(name: str) -> str:
    """Canonical lookup key: 'Hydrolyzed Wheat Protein' → 'hydrolyzed_wheat_protein'."""
    return re.sub(r"[^a-z0-9]+", "_", name.lower()).strip("_")


class AvoidCondition(BaseModel):
    """
    A profile shape a product should not be recommended for.

    Every non-empty constraint must match for the condition to apply.
    A condition with no constraints never applies.
    """

    model_config = ConfigDict(frozen=True)

    reason: str
    textures: frozenset[str] = frozenset()
    thickness: frozenset[str] = frozenset()
    porosity: frozenset[str] = frozenset()
    scalp_types: frozenset[str] = frozenset()
    damage_levels: frozenset[str] = frozenset()
    damage_indicators: frozenset[str] = frozenset()

    @field_validator("porosity", mode="before")
    @classmethod
    def fold_porosity(cls, v: Any) -> Any:
        if v is None:
            return frozenset()
        return frozenset(_POROSITY_SPELLINGS.get(str(t).lower(), str(t).lower()) for t in v)

    @field_serializer(
        "textures", "thickness", "porosity", "scalp_types", "damage_levels", "damage_indicators"
    )
    def _sorted(self, v: frozenset) -> list:
        return sorted(v)


class ProductRecord(BaseModel):
    """One catalog entry."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    brand: str
    category: ProductCategory
    subcategory: str = ""
    price_tier: PriceTier = PriceTier.MID_RANGE
    description: str = ""

    hair_types: frozenset[str] = frozenset({ALL})
    porosity_types: frozenset[str] = frozenset({ALL})
    scalp_types: frozenset[str] = frozenset({ALL})
    damage_levels: frozenset[str] = frozenset({ALL})

    key_ingredients: Tuple[str, ...] = ()
    avoid_if: Tuple[AvoidCondition, ...] = ()

    price_min: float = Field(ge=0)
    price_max: float = Field(ge=0)
    rating: float = Field(default=0.0, ge=0, le=5)
    review_count: int = Field(default=0, ge=0)
    availability_score: int = Field(default=0, ge=0, le=100)

    sulfate_free: bool = False
    paraben_free: bool = False
    cruelty_free: bool = False

    usage_frequency: str = ""
    safety_warnings: Tuple[str, ...] = ()

    @field_validator("hair_types", "scalp_types", "damage_levels", mode="before")
    @classmethod
    def fold_wildcards(cls, v: Any) -> frozenset:
        return _token_set(v)

    @field_validator("porosity_types", mode="before")
    @classmethod
    def fold_porosity(cls, v: Any) -> frozenset:
        return _token_set(v, _POROSITY_SPELLINGS)

    @field_serializer("hair_types", "porosity_types", "scalp_types", "damage_levels")
    def _sorted(self, v: frozenset) -> list:
        return sorted(v)

    @model_validator(mode="after")
    def price_range_ordered(self) -> "ProductRecord":
        if self.price_min > self.price_max:
            raise ValueError(
                f"Product '{self.id}': price_min {self.price_min} exceeds price_max {self.price_max}"
            )
        return self

    @property
    def price_range(self) -> str:
        return f"${self.price_min:.2f}-{self.price_max:.2f}"


class Catalog(BaseModel):
    model_config = ConfigDict(frozen=True)

    version: str
    products: Tuple[ProductRecord, ...] = ()

    @model_validator(mode="after")
    def ids_unique(self) -> "Catalog":
        seen = set()
        for product in self.products:
            if product.id in seen:
                raise ValueError(f"Duplicate product id '{product.id}' in catalog {self.version}")
            seen.add(product.id)
        return self

    def by_category(self, category: ProductCategory) -> Tuple[ProductRecord, ...]:
        return tuple(p for p in self.products if p.category == category)


class IngredientRecord(BaseModel):
    """Evidence and safety notes for one ingredient or ingredient family."""

    model_config = ConfigDict(frozen=True)

    name: str
    function: str
    evidence: str = ""
    safety_profile: str = ""
    # Named compounds this record subsumes, e.g. sulfates → Sodium Lauryl Sulfate.
    types: Tuple[str, ...] = ()
    axis: Optional[InteractionAxis] = None
    problematic: bool = False
    concerns: str = ""
    warnings: Tuple[str, ...] = ()

    def covers(self, ingredient: str) -> bool:
        key = ingredient_key(ingredient)
        return key == ingredient_key(self.name) or any(key == ingredient_key(t) for t in self.types)


class InteractionRule(BaseModel):
    """
    Fires when at least ``min_products`` selected products carry an
    ingredient on ``axis`` and, if set, none carry ``unless_axis``.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    axis: InteractionAxis
    min_products: int = Field(default=2, ge=1)
    unless_axis: Optional[InteractionAxis] = None
    warning: str
    signs: Tuple[str, ...] = ()
    solution: str = ""


class KnowledgeBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    version: str
    ingredients: Tuple[IngredientRecord, ...] = ()
    interactions: Tuple[InteractionRule, ...] = ()

    def lookup(self, ingredient: str) -> Optional[IngredientRecord]:
        for record in self.ingredients:
            if record.covers(ingredient):
                return record
        return None


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def load_catalog(path: Optional[Union[str, Path]] = None) -> Catalog:
    """Read and validate a catalog file. Raises pydantic.ValidationError on bad seed data."""
    source = Path(path) if path else CATALOG_FILE
    catalog = Catalog.model_validate_json(source.read_text(encoding="utf-8"))
    logger.info(
        "Loaded product catalog %s (%d products) from %s",
        catalog.version,
        len(catalog.products),
        source,
    )
    return catalog


def load_knowledge_base(path: Optional[Union[str, Path]] = None) -> KnowledgeBase:
    """Read and validate an ingredient knowledge-base file."""
    source = Path(path) if path else KNOWLEDGE_BASE_FILE
    knowledge_base = KnowledgeBase.model_validate_json(source.read_text(encoding="utf-8"))
    logger.info(
        "Loaded ingredient knowledge base %s (%d ingredients, %d interaction rules)",
        knowledge_base.version,
        len(knowledge_base.ingredients),
        len(knowledge_base.interactions),
    )
    return knowledge_base


@lru_cache
def get_catalog() -> Catalog:
    """Process-wide catalog, loaded on first use (FastAPI dependency)."""
    return load_catalog(get_settings().CATALOG_PATH)


@lru_cache
def get_knowledge_base() -> KnowledgeBase:
    """Process-wide knowledge base, loaded on first use (FastAPI dependency)."""
    return load_knowledge_base(get_settings().KNOWLEDGE_BASE_PATH)
