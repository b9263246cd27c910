"""
Rule-Based Categorizer

DESIGN DECISION: We use simple keyword matching for the first pass because:
1. It is instant (no API calls while a whole statement loads)
2. It is deterministic and easy to debug
3. It never fails - unmatched descriptions get the default category
4. The AI categorizer is there, on demand, for the rest

ORDER MATTERS: rules are evaluated top to bottom and the first match wins.
"Costco Gas" is fuel, not costco, because the fuel rule is declared first.
Changing the order changes results; tests pin it.
"""

import re
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field

from transaction_import.models.transaction import RuleBasedProvenance


DEFAULT_CATEGORY = "imported"


class KeywordPattern(BaseModel):
    """
    One keyword test against a lowercased, trimmed description.

    kind:
        contains - substring anywhere
        starts   - description starts with text
        ends     - description ends with text
        exact    - whole description equals text
        word     - text appears as a whole word
    """
    model_config = ConfigDict(frozen=True)

    text: str = Field(..., min_length=1)
    kind: str = Field(default="contains", pattern="^(contains|starts|ends|exact|word)$")
    also: tuple[str, ...] = Field(
        default=(),
        description="Substrings that must also be present"
    )
    unless: tuple[str, ...] = Field(
        default=(),
        description="Substrings that veto the match"
    )

    def matches(self, desc: str) -> bool:
        if self.kind == "contains":
            hit = self.text in desc
        elif self.kind == "starts":
            hit = desc.startswith(self.text)
        elif self.kind == "ends":
            hit = desc.endswith(self.text)
        elif self.kind == "exact":
            hit = desc == self.text
        else:
            hit = re.search(rf"\b{re.escape(self.text)}\b", desc) is not None

        if not hit:
            return False
        if any(extra not in desc for extra in self.also):
            return False
        return not any(veto in desc for veto in self.unless)


class CategoryRule(BaseModel):
    """A category and the patterns that select it. Any pattern is enough."""
    model_config = ConfigDict(frozen=True)

    category: str = Field(..., min_length=1)
    patterns: tuple[KeywordPattern, ...]

    def matches(self, desc: str) -> bool:
        return any(pattern.matches(desc) for pattern in self.patterns)


def _any(*texts: str) -> tuple[KeywordPattern, ...]:
    return tuple(KeywordPattern(text=t) for t in texts)


def _kw(text: str, kind: str = "contains", **kwargs) -> KeywordPattern:
    return KeywordPattern(text=text, kind=kind, **kwargs)


# =============================================================================
# DEFAULT RULES - declaration order is the tie-breaker
# =============================================================================

DEFAULT_RULES: tuple[CategoryRule, ...] = (
    # Paychecks first, before anything that might match "deposit"
    CategoryRule(category="paycheck", patterns=_any("direct deposit", "payroll")),
    CategoryRule(
        category="payment",
        patterns=_any("electronic payment received", "payment received", "ach credit"),
    ),
    CategoryRule(category="interest", patterns=_any("interest")),
    # Gas stations before stores that sell fuel (Costco Gas, Cub Foods Gas, ...)
    CategoryRule(
        category="fuel",
        patterns=(
            _kw(" gas "),
            _kw(" gas#"),
            _kw("gas ", "starts"),
            _kw(" gas", "ends"),
            _kw("mobil", unless=("t-mobile", "tmobile")),
            _kw("holiday", "starts"),
            _kw("bp", "word", unless=("subway",)),
        ) + _any(
            "gas stop", "gas station", "shell", "exxon", "chevron", "texaco",
            "fuel", "gasoline", "speedway", "wawa", "sunoco", "marathon",
            "bill's superette", "bills superette", "superamerica",
            "holiday station", "kwik trip", "caseys", "casey's", "valero",
            "thortons", "thorntons", "get go", "getgo", "pilot", "loves",
            "lovs", "rocket", "pdq", "ez stop",
        ),
    ),
    CategoryRule(category="costco", patterns=_any("costco")),
    CategoryRule(category="target", patterns=_any("target")),
    CategoryRule(
        category="garbage",
        patterns=_any(
            "solid waste", "curbeside", "curbside waste", "walters recycling",
            "allied waste", "republic services", "waste management",
        ),
    ),
    CategoryRule(
        category="utilities",
        patterns=_any(
            "centerpoint energy", "xcel energy", "connexus energy",
            "northern states power",
        ) + (_kw("city of", "starts", unless=("cafe",)),),
    ),
    CategoryRule(
        category="transportation",
        patterns=_any(
            "uber", "lyft", "taxi", "rideshare", "curb", " bus ", "parking",
            "toll", "tvm ",
        ) + (
            _kw("bus ", "starts"),
            _kw(" bus", "ends"),
            _kw("bus", "exact"),
            _kw("trp", also=("fee",)),
            _kw("trip", also=("fee",)),
            _kw("navan", also=("fee",)),
        ),
    ),
    CategoryRule(
        category="restaurants",
        patterns=(_kw("subway", unless=("subway system",)),) + _any(
            "mcdonalds", "mcdonald's", "pizza", "restaurant", "burger", "kfc",
            "taco bell", "taco john", "starbucks", "dunkin", "chipotle",
            "wendy", "dominos", "domino's", "papa john", "applebee",
            "olive garden", "chick-fil-a", "chik-fil-a", "chick fil a",
            "chickfila", "panera", "cafe", "cafeteria", "caribou", "slice",
            "diner", "grill", "culvers", "culver's", "shake shack", "sonic",
            "tgi friday", "fridays", "sushi", "five guys", "arbys", "arby's",
            "jimmy john", "dairy queen", "little caesar", "red robin",
            "buffet", "texas roadhouse", "perkins", "hardees", "hardee's",
            "potbelly", "which wich", "panda express",
        ),
    ),
    CategoryRule(
        category="groceries",
        patterns=_any(
            "walmart", "kroger", "grocery", "supermarket", "safeway",
            "whole foods", "trader joe", "food lion", "publix", "aldi",
            "harris teeter", "wegmans", "cub foods", "cubfoods",
            "rainbow foods", "coborns", "coborn's", "hyvee", "hy-vee",
            "hy vee", "frys food", "fry's food", "fred meyer",
            "imperfect foods", "county market", "festival foods", "lunds",
            "byerlys", "byerly's", "jewel osco", "albertsons", "superone",
            "super one", "cash wise",
        ),
    ),
    CategoryRule(
        category="communication",
        patterns=_any(
            "t-mobile", "tmobile", "xfinity", "comcast", "verizon", "at&t",
            "spectrum",
        ),
    ),
    CategoryRule(
        category="entertainment",
        patterns=_any(
            "netflix", "hulu", "disney+", "spotify", "cinema", "theater",
            "theatre", "playstation", "xbox", "steam", "redbox",
        ),
    ),
    CategoryRule(
        category="liquor",
        patterns=_any("liquor", "wine", "brewery", "brewing"),
    ),
    CategoryRule(
        category="healthcare",
        patterns=_any(
            "pharmacy", "doctor", "medical", "hospital", "dentist", "dental",
            "clinic", "cvs", "walgreens", "rite aid", "chiropract",
            "health partners", "healthpartners", "quest diagnostics",
            "pediatric", "orthodontist", "optometrist", "eye care",
            "eye institute",
        ),
    ),
    CategoryRule(
        category="shopping",
        patterns=_any(
            "amazon", "best buy", "home depot", "lowes", "lowe's", "macy",
            "nordstrom", "kohls", "kohl's", "menards", "clothing store",
            "department store", "retail store", "five below",
            "platos closet", "plato's closet", "skechers",
        ),
    ),
    # Whole-word "fee"/"atm" so "coffee" and "treatment" stay out of banking
    CategoryRule(
        category="banking",
        patterns=(
            _kw("fee", "word", unless=("trp", "trip", "navan", "school")),
            _kw("atm", "word"),
        ) + _any("bank", "transfer", "charge", "deposit", "withdrawal"),
    ),
)


class RuleBasedCategorizer:
    """
    Maps a free-text description to a category with ordered keyword rules.

    Pure and total: never raises, never returns an empty category.
    """

    def __init__(
        self,
        rules: Optional[Iterable[CategoryRule]] = None,
        default_category: str = DEFAULT_CATEGORY,
    ):
        self._rules = tuple(rules) if rules is not None else DEFAULT_RULES
        self._default = default_category

    @property
    def rules(self) -> tuple[CategoryRule, ...]:
        return self._rules

    @property
    def default_category(self) -> str:
        return self._default

    @property
    def known_categories(self) -> list[str]:
        """Every category this categorizer can return, in rule order."""
        seen = []
        for rule in self._rules:
            if rule.category not in seen:
                seen.append(rule.category)
        if self._default not in seen:
            seen.append(self._default)
        return seen

    def categorize(self, description: Optional[str]) -> str:
        desc = (description or "").lower().strip()
        if not desc:
            return self._default

        for rule in self._rules:
            if rule.matches(desc):
                return rule.category
        return self._default

    def categorize_with_provenance(
        self,
        description: Optional[str],
        reason: Optional[str] = None,
    ) -> tuple[str, RuleBasedProvenance]:
        """Category plus the provenance record that must travel with it."""
        return (
            self.categorize(description),
            RuleBasedProvenance(fallback_reason=reason),
        )


_default_categorizer = RuleBasedCategorizer()


def categorize_description(description: Optional[str]) -> str:
    """Categorize with the default rule set."""
    return _default_categorizer.categorize(description)
