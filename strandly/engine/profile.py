"""
strandly/engine/profile.py
──────────────────────────
Profile Normalizer: converts untyped quiz answers into an immutable
HairProfile before any scoring logic runs.

The quiz front-ends have shipped several payload shapes over time
(snake_case, kebab-case, camelCase, emoji-decorated option labels), so
every field is looked up under a list of aliases and matched by keyword.
Missing or unrecognised answers fall back to documented defaults and are
recorded as defaulted, which later lowers the confidence score.
normalize() never raises.
"""

import logging
import re
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple

from pydantic import BaseModel, ConfigDict, field_serializer

logger = logging.getLogger(__name__)


class Texture(str, Enum):
    STRAIGHT = "straight"
    WAVY = "wavy"
    CURLY = "curly"
    COILY = "coily"


class Thickness(str, Enum):
    FINE = "fine"
    MEDIUM = "medium"
    COARSE = "coarse"


class Porosity(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"


class ScalpCondition(str, Enum):
    OILY = "oily"
    DRY = "dry"
    SENSITIVE = "sensitive"
    NORMAL = "normal"
    FLAKY = "flaky"


class DamageIndicator(str, Enum):
    BLEACHING = "bleaching"
    HEAT_STYLING = "heat_styling"
    COLORING = "coloring"
    CHEMICAL_RELAXING = "chemical_relaxing"


class HeatFrequency(str, Enum):
    NONE = "none"
    OCCASIONAL = "occasional"
    FREQUENT = "frequent"
    DAILY = "daily"


class Breakage(str, Enum):
    NONE = "none"
    MODERATE = "moderate"
    EXCESSIVE = "excessive"


class ChemicalFrequency(str, Enum):
    """How often unnamed chemical treatments are done."""

    NONE = "none"
    OCCASIONAL = "occasional"
    FREQUENT = "frequent"


# Fields whose supplied/defaulted state drives the completeness score.
CORE_FIELDS: Tuple[str, ...] = ("texture", "thickness", "porosity", "damage_indicators")

CHEMICAL_INDICATORS = frozenset(
    {DamageIndicator.BLEACHING, DamageIndicator.COLORING, DamageIndicator.CHEMICAL_RELAXING}
)

DEFAULT_CURL_PATTERNS: Dict[Texture, str] = {
    Texture.STRAIGHT: "1a",
    Texture.WAVY: "2b",
    Texture.CURLY: "3b",
    Texture.COILY: "4b",
}

_CURL_FAMILIES: Dict[str, Texture] = {
    "1": Texture.STRAIGHT,
    "2": Texture.WAVY,
    "3": Texture.CURLY,
    "4": Texture.COILY,
}

_CURL_PATTERN_RE = re.compile(r"^(?:type\s*)?([1-4])([abc])?$")

_ALIASES: Dict[str, Tuple[str, ...]] = {
    "texture": ("texture", "hair_texture", "hair-texture", "hairType", "hair_type", "hair-type"),
    "thickness": ("thickness", "hair_thickness", "hair-thickness", "hairThickness"),
    "porosity": ("porosity", "hair_porosity", "hair-porosity", "hairPorosity"),
    "curl_pattern": ("curl_pattern", "curlPattern", "curl-pattern"),
    "scalp_type": ("scalp_type", "scalp-type", "scalpType"),
    "damage_indicators": (
        "damage_indicators",
        "damageIndicators",
        "chemical_treatments",
        "chemical-treatments",
        "chemicalTreatments",
    ),
    "heat_styling": ("heat_styling", "heat-styling", "heatStyling"),
    "breakage": ("hair_breakage", "hair-breakage", "breakage"),
    "sun_exposure": ("sun_exposure", "sun-exposure", "sunExposure"),
    "chlorine_exposure": ("chlorine_exposure", "chlorine-exposure", "chlorineExposure"),
    "lifestyle_factors": ("lifestyle_factors", "lifestyle-factors", "lifestyleFactors", "lifestyle"),
    "assessment_conflicts": ("assessment_conflicts", "assessmentConflicts", "conflicting_answers"),
}

_TEXTURE_SYNONYMS = {"kinky": "coily", "afro": "coily", "curl": "curly", "wave": "wavy"}
_THICKNESS_SYNONYMS = {"thin": "fine", "thick": "coarse", "normal": "medium", "average": "medium"}
_POROSITY_SYNONYMS = {"medium": "normal", "average": "normal", "moderate": "normal"}

# Keyword → condition; each pattern must start a word of the answer token.
_SCALP_KEYWORDS: Tuple[Tuple[re.Pattern, ScalpCondition], ...] = (
    (re.compile(r"\boil"), ScalpCondition.OILY),
    (re.compile(r"\bgreas"), ScalpCondition.OILY),
    (re.compile(r"\bdry"), ScalpCondition.DRY),
    (re.compile(r"\bsensitiv"), ScalpCondition.SENSITIVE),
    (re.compile(r"\bitch"), ScalpCondition.SENSITIVE),
    (re.compile(r"\bflak"), ScalpCondition.FLAKY),
    (re.compile(r"\bdandruff"), ScalpCondition.FLAKY),
    (re.compile(r"\bnormal"), ScalpCondition.NORMAL),
    (re.compile(r"\bhealthy"), ScalpCondition.NORMAL),
)

_SCALP_FLAGS: Tuple[Tuple[str, ScalpCondition], ...] = (
    ("scalp_oily", ScalpCondition.OILY),
    ("scalp_dry", ScalpCondition.DRY),
    ("scalp_sensitive", ScalpCondition.SENSITIVE),
    ("scalp_itchy", ScalpCondition.SENSITIVE),
    ("scalp_flaky", ScalpCondition.FLAKY),
)

_DAMAGE_KEYWORDS: Tuple[Tuple[re.Pattern, DamageIndicator], ...] = (
    (re.compile(r"\bbleach"), DamageIndicator.BLEACHING),
    (re.compile(r"\blighten"), DamageIndicator.BLEACHING),
    (re.compile(r"\bheat"), DamageIndicator.HEAT_STYLING),
    (re.compile(r"\bcolou?r"), DamageIndicator.COLORING),
    (re.compile(r"\bhighlight"), DamageIndicator.COLORING),
    (re.compile(r"\bdye"), DamageIndicator.COLORING),
    (re.compile(r"\brelax"), DamageIndicator.CHEMICAL_RELAXING),
    # "perm" but not "permanent"
    (re.compile(r"\bperm(?:s|ed|ing)?\b"), DamageIndicator.CHEMICAL_RELAXING),
    (re.compile(r"\bstraighten"), DamageIndicator.CHEMICAL_RELAXING),
)

_NEGATION_RE = re.compile(r"\b(?:no|not|never|without|don'?t)\b")

_NONE_ANSWERS = frozenset({"none", "no", "never", "n/a", "nothing"})
_YES_ANSWERS = frozenset({"yes", "y", "true", "1"})

_HEAT_ANSWERS: Dict[str, HeatFrequency] = {
    "daily": HeatFrequency.DAILY,
    "every_day": HeatFrequency.DAILY,
    "frequent": HeatFrequency.FREQUENT,
    "frequently": HeatFrequency.FREQUENT,
    "often": HeatFrequency.FREQUENT,
    "weekly": HeatFrequency.FREQUENT,
    "regularly": HeatFrequency.FREQUENT,
    "occasional": HeatFrequency.OCCASIONAL,
    "occasionally": HeatFrequency.OCCASIONAL,
    "sometimes": HeatFrequency.OCCASIONAL,
    "rarely": HeatFrequency.OCCASIONAL,
}

# Bare frequency answers to the chemical-treatment question.
_CHEMICAL_FREQUENCY_ANSWERS: Dict[str, ChemicalFrequency] = {
    "frequent": ChemicalFrequency.FREQUENT,
    "frequently": ChemicalFrequency.FREQUENT,
    "often": ChemicalFrequency.FREQUENT,
    "regularly": ChemicalFrequency.FREQUENT,
    "occasional": ChemicalFrequency.OCCASIONAL,
    "occasionally": ChemicalFrequency.OCCASIONAL,
    "sometimes": ChemicalFrequency.OCCASIONAL,
    "rarely": ChemicalFrequency.OCCASIONAL,
}

_CHEMICAL_FREQUENCY_ORDER = tuple(ChemicalFrequency)

_BREAKAGE_ANSWERS: Dict[str, Breakage] = {
    "excessive": Breakage.EXCESSIVE,
    "severe": Breakage.EXCESSIVE,
    "a_lot": Breakage.EXCESSIVE,
    "moderate": Breakage.MODERATE,
    "some": Breakage.MODERATE,
    "minimal": Breakage.NONE,
    "little": Breakage.NONE,
}


class HairProfile(BaseModel):
    """
    Normalised, immutable snapshot of one quiz submission.

    Every enum field always holds a value; ``supplied_fields`` records
    which answers came from the user rather than from defaults.
    """

    model_config = ConfigDict(frozen=True)

    texture: Texture = Texture.STRAIGHT
    thickness: Thickness = Thickness.MEDIUM
    curl_pattern: str = DEFAULT_CURL_PATTERNS[Texture.STRAIGHT]
    porosity: Porosity = Porosity.NORMAL
    scalp_type: frozenset[ScalpCondition] = frozenset({ScalpCondition.NORMAL})
    damage_indicators: frozenset[DamageIndicator] = frozenset()
    lifestyle_factors: frozenset[str] = frozenset()
    heat_frequency: HeatFrequency = HeatFrequency.NONE
    breakage: Breakage = Breakage.NONE
    chemical_frequency: ChemicalFrequency = ChemicalFrequency.NONE
    supplied_fields: frozenset[str] = frozenset()
    assessment_conflicts: bool = False

    @field_serializer(
        "scalp_type", "damage_indicators", "lifestyle_factors", "supplied_fields"
    )
    def _sorted(self, v: frozenset) -> list:
        return sorted(v)

    @property
    def defaulted_fields(self) -> frozenset[str]:
        return frozenset(CORE_FIELDS) - self.supplied_fields

    @property
    def scalp_issues(self) -> frozenset[ScalpCondition]:
        return self.scalp_type - {ScalpCondition.NORMAL}

    @property
    def chemical_history(self) -> frozenset[DamageIndicator]:
        return self.damage_indicators & CHEMICAL_INDICATORS

    def is_supplied(self, field: str) -> bool:
        return field in self.supplied_fields


# ---------------------------------------------------------------------------
# Raw answer helpers
# ---------------------------------------------------------------------------

_MISSING = object()


def _lookup(raw: Mapping[str, Any], field: str) -> Any:
    """Return the first non-blank answer stored under any alias of ``field``."""
    for key in _ALIASES[field]:
        value = raw.get(key)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return _MISSING


def _slug(value: Any) -> str:
    text = str(value).strip().lower()
    return re.sub(r"[\s\-]+", "_", text)


def _tokens(value: Any) -> List[str]:
    """Split a string or iterable answer into lower-cased tokens."""
    if value is _MISSING or value is None:
        return []
    if isinstance(value, str):
        parts: Iterable[Any] = value.split(",")
    elif isinstance(value, Mapping):
        parts = [k for k, v in value.items() if v]
    elif isinstance(value, Iterable):
        parts = value
    else:
        parts = [value]
    return [str(p).strip().lower() for p in parts if str(p).strip()]


def _words(token: str) -> str:
    """Spell out snake/kebab tokens so word-boundary patterns see separate words."""
    return re.sub(r"[_\-/]+", " ", token)


def _is_negated(token: str) -> bool:
    return bool(_NEGATION_RE.search(_words(token)))


def _coerce(enum_cls: type, value: Any, synonyms: Mapping[str, str]) -> Optional[Enum]:
    if value is _MISSING:
        return None
    text = _slug(value)
    for candidate in (text, text.split("_")[0]):
        candidate = synonyms.get(candidate, candidate)
        try:
            return enum_cls(candidate)
        except ValueError:
            continue
    return None


def _is_yes(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return value is not _MISSING and value is not None and _slug(value) in _YES_ANSWERS


def _curl_family(value: Any) -> Optional[Tuple[Texture, str]]:
    """Parse '3b' / 'Type 4' style answers into (texture family, pattern)."""
    if value is _MISSING:
        return None
    match = _CURL_PATTERN_RE.match(str(value).strip().lower())
    if not match:
        return None
    family, letter = match.group(1), match.group(2)
    texture = _CURL_FAMILIES[family]
    pattern = family + letter if letter else DEFAULT_CURL_PATTERNS[texture]
    return texture, pattern


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def normalize(raw_answers: Mapping[str, Any]) -> HairProfile:
    """
    Build a HairProfile from raw quiz answers.

    Defaults: texture straight, thickness medium, porosity normal,
    scalp {normal}, no damage indicators, no lifestyle factors. The curl
    pattern defaults from the texture family.
    """
    raw: Mapping[str, Any] = raw_answers or {}
    supplied: Set[str] = set()
    conflicts = False

    # Texture / curl pattern
    raw_texture = _lookup(raw, "texture")
    texture = _coerce(Texture, raw_texture, _TEXTURE_SYNONYMS)
    texture_from_curl = _curl_family(raw_texture)
    if texture is None and texture_from_curl is not None:
        texture = texture_from_curl[0]

    curl = _curl_family(_lookup(raw, "curl_pattern")) or texture_from_curl
    if curl is not None:
        supplied.add("curl_pattern")

    if texture is not None:
        supplied.add("texture")
        if curl is not None and curl[0] != texture:
            conflicts = True
    elif curl is not None:
        # Inferred from the curl family; still counts as defaulted.
        texture = curl[0]
    else:
        texture = Texture.STRAIGHT

    curl_pattern = curl[1] if curl is not None else DEFAULT_CURL_PATTERNS[texture]

    thickness = _coerce(Thickness, _lookup(raw, "thickness"), _THICKNESS_SYNONYMS)
    if thickness is not None:
        supplied.add("thickness")
    else:
        thickness = Thickness.MEDIUM

    porosity = _coerce(Porosity, _lookup(raw, "porosity"), _POROSITY_SYNONYMS)
    if porosity is not None:
        supplied.add("porosity")
    else:
        porosity = Porosity.NORMAL

    scalp = _normalize_scalp(raw)
    if scalp:
        supplied.add("scalp_type")
    else:
        scalp = {ScalpCondition.NORMAL}

    indicators, heat, breakage, chemical, damage_supplied = _normalize_damage(raw)
    if damage_supplied:
        supplied.add("damage_indicators")

    lifestyle = _normalize_lifestyle(raw)

    if _is_yes(_lookup(raw, "assessment_conflicts")):
        conflicts = True

    profile = HairProfile(
        texture=texture,
        thickness=thickness,
        curl_pattern=curl_pattern,
        porosity=porosity,
        scalp_type=frozenset(scalp),
        damage_indicators=frozenset(indicators),
        lifestyle_factors=frozenset(lifestyle),
        heat_frequency=heat,
        breakage=breakage,
        chemical_frequency=chemical,
        supplied_fields=frozenset(supplied),
        assessment_conflicts=conflicts,
    )
    logger.debug(
        "Normalized quiz answers: texture=%s porosity=%s defaulted=%s",
        profile.texture.value,
        profile.porosity.value,
        sorted(profile.defaulted_fields),
    )
    return profile


def _normalize_scalp(raw: Mapping[str, Any]) -> Set[ScalpCondition]:
    found: Set[ScalpCondition] = set()
    for token in _tokens(_lookup(raw, "scalp_type")):
        if _is_negated(token):
            continue
        words = _words(token)
        for pattern, condition in _SCALP_KEYWORDS:
            if pattern.search(words):
                found.add(condition)
    for key, condition in _SCALP_FLAGS:
        if _is_yes(raw.get(key, _MISSING)):
            found.add(condition)
    if len(found) > 1:
        found.discard(ScalpCondition.NORMAL)
    return found


def _normalize_damage(
    raw: Mapping[str, Any],
) -> Tuple[Set[DamageIndicator], HeatFrequency, Breakage, ChemicalFrequency, bool]:
    indicators: Set[DamageIndicator] = set()
    chemical = ChemicalFrequency.NONE
    supplied = False

    for token in _tokens(_lookup(raw, "damage_indicators")):
        slug = _slug(token)
        if slug in _NONE_ANSWERS or _is_negated(token):
            # "no heat styling" answers the question without reporting damage.
            supplied = True
            continue
        if slug in _CHEMICAL_FREQUENCY_ANSWERS:
            chemical = max(
                chemical, _CHEMICAL_FREQUENCY_ANSWERS[slug], key=_CHEMICAL_FREQUENCY_ORDER.index
            )
            supplied = True
            continue
        words = _words(token)
        for pattern, indicator in _DAMAGE_KEYWORDS:
            if pattern.search(words):
                indicators.add(indicator)
                supplied = True

    raw_damage = _lookup(raw, "damage_indicators")
    if raw_damage is not _MISSING and not isinstance(raw_damage, str) and not _tokens(raw_damage):
        # An explicitly empty list is a "none of these" answer.
        supplied = True

    heat = HeatFrequency.NONE
    raw_heat = _lookup(raw, "heat_styling")
    if raw_heat is not _MISSING:
        slug = _slug(raw_heat)
        if slug in _NONE_ANSWERS:
            supplied = True
        elif slug in _HEAT_ANSWERS:
            heat = _HEAT_ANSWERS[slug]
            indicators.add(DamageIndicator.HEAT_STYLING)
            supplied = True

    breakage = Breakage.NONE
    raw_breakage = _lookup(raw, "breakage")
    if raw_breakage is not _MISSING:
        slug = _slug(raw_breakage)
        if slug in _NONE_ANSWERS:
            supplied = True
        elif slug in _BREAKAGE_ANSWERS:
            breakage = _BREAKAGE_ANSWERS[slug]
            supplied = True

    return indicators, heat, breakage, chemical, supplied


def _normalize_lifestyle(raw: Mapping[str, Any]) -> Set[str]:
    factors = {_slug(t) for t in _tokens(_lookup(raw, "lifestyle_factors"))}
    factors -= _NONE_ANSWERS

    sun = _lookup(raw, "sun_exposure")
    if sun is not _MISSING and _slug(sun) == "high":
        factors.add("high_sun_exposure")

    chlorine = _lookup(raw, "chlorine_exposure")
    if chlorine is not _MISSING and _slug(chlorine) == "frequent":
        factors.add("frequent_chlorine")

    return factors
