"""
Strategic industry vocabulary

Keywords containing any of these terms belong to the food & beverage
verticals the account sells into. They are expensive and low volume by
nature, so they are never eliminated (paused / negated); only bid and
creative changes are allowed on them.
"""

import re

INDUSTRY_TERMS: tuple[str, ...] = (
    # meat & poultry
    "meat", "beef", "pork", "poultry", "chicken", "turkey", "lamb",
    "sausage", "deli", "butcher", "slaughter", "protein",
    # seafood
    "seafood", "fish", "shrimp", "salmon", "tuna", "shellfish", "aquaculture",
    # dairy
    "dairy", "milk", "cheese", "yogurt", "cream", "butter", "whey",
    # bakery
    "bakery", "bread", "pastry", "confectionery", "snack",
    # beverage
    "brewery", "beverage", "wine", "distillery", "juice", "bottling",
    # general food & beverage
    "food processing", "food manufacturing", "food production", "food safety",
    "food and beverage", "food & beverage", "f&b", "food industry",
    # compliance / standards
    "haccp", "usda", "fda", "gfsi", "sqf", "brc", "fsma",
    "food traceability", "lot tracking", "catch weight",
    # ERP + industry combinations
    "erp for food", "erp for meat", "erp for dairy", "erp for seafood",
    "erp for bakery", "erp for beverage", "food erp", "meat erp",
    "food software", "meat software",
)

# Ordered: the more specific vertical wins
_CATEGORY_PATTERNS: tuple[tuple[str, re.Pattern], ...] = (
    ("meat_processing", re.compile(r"meat|beef|pork|sausage|deli|butcher|slaughter|protein")),
    ("poultry", re.compile(r"poultry|chicken|turkey")),
    ("seafood", re.compile(r"seafood|fish|shrimp|salmon|tuna|shellfish|aquaculture")),
    ("dairy", re.compile(r"dairy|milk|cheese|yogurt|cream|butter|whey")),
    ("bakery", re.compile(r"bakery|bread|pastry|confectionery|snack")),
    ("beverage", re.compile(r"brewery|beverage|wine|distillery|juice|bottling")),
    ("compliance", re.compile(
        r"haccp|usda|fda|gfsi|sqf|brc|fsma|food traceability|lot tracking|catch weight"
    )),
    ("food_general", re.compile(
        r"food processing|food manufacturing|food production|food safety"
        r"|food.*(erp|software)|f&b|food and beverage|food & beverage|food industry"
    )),
)


def find_protected_term(keyword_text: str) -> str | None:
    """First vocabulary term contained in the keyword, or None"""
    lower = keyword_text.lower()
    for term in INDUSTRY_TERMS:
        if term in lower:
            return term
    return None


def classify_industry(keyword_text: str) -> str | None:
    """Industry category of a keyword, None when it is not strategic"""
    lower = keyword_text.lower()
    for category, pattern in _CATEGORY_PATTERNS:
        if pattern.search(lower):
            return category
    return None


def is_strategic_keyword(keyword_text: str) -> bool:
    return find_protected_term(keyword_text) is not None
