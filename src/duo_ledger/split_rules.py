"""Category split rules with a persisted config blob and a short-lived cache."""

import json
import logging
import time
from collections.abc import Callable

from .db import Database
from .exceptions import ValidationError
from .models import DEFAULT_SPLIT, SPLIT_EPSILON, SplitRule, is_valid_split

logger = logging.getLogger(__name__)

SETTINGS_KEY = "category_split_rules"
DEFAULT_CACHE_TTL_SECONDS = 60.0

# Lowercase variant -> canonical category name
CATEGORY_SYNONYMS: dict[str, str] = {
    "grocery": "Groceries",
    "groceries": "Groceries",
    "food": "Food",
    "dining": "Food",
    "restaurant": "Food",
    "bills": "Bills",
    "bill": "Bills",
    "utilities": "Bills",
    "shopping": "Shopping",
    "shop": "Shopping",
    "travel": "Travel",
    "trip": "Travel",
    "entertainment": "Entertainment",
    "fun": "Entertainment",
    "transport": "Transport",
    "transportation": "Transport",
    "commute": "Transport",
}

# Canonical names offered to interactive pickers
KNOWN_CATEGORIES = sorted({*CATEGORY_SYNONYMS.values(), "Medical", "Other"})


def normalize_category(category: str | None) -> str:
    """
    Normalize a category name for consistent rule lookup.

    Known synonyms map case-insensitively to their canonical name; anything
    else gets its first letter capitalized and the rest lowercased.

    Args:
        category: The raw category string

    Returns:
        Canonical category name ('Other' for empty input)
    """
    if not category or not category.strip():
        return "Other"

    trimmed = category.strip()
    canonical = CATEGORY_SYNONYMS.get(trimmed.lower())
    if canonical:
        return canonical

    return trimmed[0].upper() + trimmed[1:].lower()


class RuleCache:
    """Timestamped snapshot of the sanitized split rules."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._snapshot: dict[str, SplitRule] | None = None
        self._expires_at = 0.0

    def get(self) -> dict[str, SplitRule] | None:
        """Return the snapshot if it is still fresh."""
        if self._snapshot is None or self.clock() >= self._expires_at:
            return None
        return self._snapshot

    def put(self, snapshot: dict[str, SplitRule]):
        self._snapshot = snapshot
        self._expires_at = self.clock() + self.ttl_seconds

    def invalidate(self):
        self._snapshot = None
        self._expires_at = 0.0


class SplitRuleStore:
    """Resolves and persists category -> split percentage rules.

    Reads fail open: any storage or parse problem degrades to the 50/50
    default instead of blocking balance computation.
    """

    def __init__(self, database: Database, cache: RuleCache | None = None):
        """Initialize the store."""
        self.db = database
        self.cache = cache or RuleCache()

    def get_rule(self, category: str | None) -> SplitRule:
        """
        Look up the split rule for a category. Never raises.

        Args:
            category: The raw category name

        Returns:
            The stored rule, or the global 50/50 default
        """
        try:
            rules = self.get_all_rules()
            normalized = normalize_category(category)

            rule = rules.get(normalized)
            if rule is None and category:
                rule = rules.get(category)

            if rule:
                logger.debug(f"Split rule for '{category}' -> {normalized}: {rule}")
                return rule

            logger.debug(f"No split rule for '{category}', using default")
            return DEFAULT_SPLIT
        except Exception as e:
            logger.error(f"Split rule lookup failed for '{category}': {e}")
            return DEFAULT_SPLIT

    def get_all_rules(self) -> dict[str, SplitRule]:
        """
        Get all valid stored rules, served from cache when fresh.

        Entries failing the split invariant are skipped with a warning. A
        missing blob, a parse error, or a storage failure yields an empty map.
        """
        cached = self.cache.get()
        if cached is not None:
            return dict(cached)

        try:
            raw = self.db.get_config(SETTINGS_KEY)
        except Exception as e:
            # Not cached: the next read retries the database
            logger.error(f"Failed to read split rules, using defaults: {e}")
            return {}

        rules = _parse_rules(raw) if raw else {}
        self.cache.put(rules)
        return dict(rules)

    def update_rule(self, category: str, percent_a: float, percent_b: float):
        """
        Persist a split rule for a category.

        Raises:
            ValidationError: If the percentages are out of range or do not sum
                to 1.0
        """
        if not is_valid_split(percent_a, percent_b):
            raise ValidationError(
                f"Invalid split percentages: {percent_a} + {percent_b} must each be "
                f"in [0, 1] and sum to 1.0 (within {SPLIT_EPSILON})"
            )

        normalized = normalize_category(category)

        self.invalidate_cache()
        raw = self.db.get_config(SETTINGS_KEY)
        current = _parse_rules(raw) if raw else {}
        updated = {
            **current,
            normalized: SplitRule(percent_a=percent_a, percent_b=percent_b),
        }
        self.db.set_config(SETTINGS_KEY, _dump_rules(updated))
        self.invalidate_cache()

        logger.info(
            f"Updated split rule: {normalized} -> "
            f"{percent_a:.0%}/{percent_b:.0%}"
        )

    def reset_to_defaults(self):
        """Delete all stored rules so every category uses the default."""
        self.invalidate_cache()
        if self.db.delete_config(SETTINGS_KEY):
            logger.info("Split rules reset to defaults")
        self.invalidate_cache()

    def invalidate_cache(self):
        """Drop the cached snapshot so the next read hits the database."""
        self.cache.invalidate()


def _parse_rules(raw: str) -> dict[str, SplitRule]:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.error(f"Split rules blob is not valid JSON: {e}")
        return {}

    if not isinstance(data, dict):
        logger.warning("Split rules blob is not an object, ignoring")
        return {}

    rules: dict[str, SplitRule] = {}
    for category, entry in data.items():
        if not isinstance(entry, dict):
            logger.warning(f"Invalid split rule for category '{category}', skipping")
            continue
        percent_a = entry.get("percent_a")
        percent_b = entry.get("percent_b")
        if not is_valid_split(percent_a, percent_b):
            logger.warning(f"Invalid split rule for category '{category}', skipping")
            continue
        rules[category] = SplitRule(percent_a=percent_a, percent_b=percent_b)
    return rules


def _dump_rules(rules: dict[str, SplitRule]) -> str:
    return json.dumps(
        {category: rule.model_dump() for category, rule in sorted(rules.items())}
    )
