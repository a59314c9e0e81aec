"""Categorization domain service.

Owns the per-user matcher caches and is the single entry point the import
pipeline uses to turn raw descriptions into merchant names and categories.
"""

import threading
from typing import Callable, Generic, Hashable, Optional, Sequence, TypeVar

from ingestkit.config import DEFAULT_FUZZY_THRESHOLD
from ingestkit.database.base import Database
from ingestkit.domain.engine import CategorizationEngine, normalize_pattern
from ingestkit.domain.entities import (
    CategorizationResult,
    CategoryRule,
    FuzzyMatchResult,
    Merchant,
    SearchResult,
)
from ingestkit.domain.errors import CategorizationError, PersistenceError
from ingestkit.domain.fuzzy import FuzzyMatcher
from ingestkit.domain.merchant import DEFAULT_MERCHANTS, clean_description
from ingestkit.domain.search import DEFAULT_CATEGORY_LIMIT, DEFAULT_LIMIT, SearchIndex
from ingestkit.logging_setup import get_logger

logger = get_logger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class MatcherCache(Generic[K, V]):
    """Mutex-guarded build-once cache with explicit invalidation.

    Values are built lazily on first use and live until invalidated; there
    is no expiry.
    """

    def __init__(self, name: str, builder: Callable[[K], V]):
        self.name = name
        self._builder = builder
        self._lock = threading.Lock()
        self._values: dict[K, V] = {}

    def get_or_build(self, key: K) -> V:
        """Return the cached value for ``key``, building it if needed.

        Raises:
            CategorizationError: If the builder fails
        """
        with self._lock:
            if key in self._values:
                return self._values[key]
            try:
                value = self._builder(key)
            except Exception as e:
                raise CategorizationError(f"failed to build {self.name} for {key!r}: {e}") from e
            self._values[key] = value
            logger.debug("built %s for %r", self.name, key)
            return value

    def invalidate(self, key: K) -> None:
        with self._lock:
            self._values.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._values.clear()

    def __contains__(self, key: K) -> bool:
        with self._lock:
            return key in self._values

    def __len__(self) -> int:
        with self._lock:
            return len(self._values)


def _apply(base: CategorizationResult, clean_name: str, category_id, is_recurring, rule_id, merchant_id):
    return CategorizationResult(
        clean_merchant_name=clean_name or base.clean_merchant_name,
        category_id=category_id,
        is_recurring=is_recurring,
        rule_id=rule_id,
        merchant_id=merchant_id,
    )


class CategorizationService:
    """Service for categorizing descriptions and managing rules and merchants."""

    def __init__(
        self,
        db: Database,
        search_index: Optional[SearchIndex] = None,
        fuzzy_threshold: int = DEFAULT_FUZZY_THRESHOLD,
    ):
        """Initialize categorization service.

        Args:
            db: Database instance
            search_index: Optional full-text index; search methods return
                nothing when it is absent
            fuzzy_threshold: Default minimum score for fuzzy matches
        """
        self.db = db
        self.search_index = search_index
        self.fuzzy_threshold = fuzzy_threshold
        self._search_lock = threading.Lock()

        self.rules = MatcherCache("rules", self._load_rules)
        self.merchants = MatcherCache("merchants", self._load_merchants)
        self.engines = MatcherCache("engine", self._build_engine)
        self.fuzzy_matchers = MatcherCache("fuzzy matcher", self._build_fuzzy_matcher)

    # -- cache builders ---------------------------------------------------

    def _load_rules(self, user_id: str) -> tuple[CategoryRule, ...]:
        return tuple(self.db.get_user_rules(user_id))

    def _load_merchants(self, user_id: str) -> tuple[Merchant, ...]:
        return tuple(self.db.get_merchants(user_id))

    def _build_engine(self, user_id: str) -> CategorizationEngine:
        return CategorizationEngine(self.rules.get_or_build(user_id), self.merchants.get_or_build(user_id))

    def _build_fuzzy_matcher(self, user_id: str) -> FuzzyMatcher:
        return FuzzyMatcher(self.rules.get_or_build(user_id), self.merchants.get_or_build(user_id))

    def invalidate(self, user_id: str) -> None:
        """Drop every cached matcher for a user."""
        self.rules.invalidate(user_id)
        self.merchants.invalidate(user_id)
        self.engines.invalidate(user_id)
        self.fuzzy_matchers.invalidate(user_id)

    def invalidate_all(self) -> None:
        """Drop every cached matcher for every user."""
        self.rules.clear()
        self.merchants.clear()
        self.engines.clear()
        self.fuzzy_matchers.clear()

    # -- rules and merchants ----------------------------------------------

    def get_user_rules(self, user_id: str) -> list[CategoryRule]:
        return list(self.rules.get_or_build(user_id))

    def get_merchants(self, user_id: str) -> list[Merchant]:
        return list(self.merchants.get_or_build(user_id))

    def create_rule(
        self,
        user_id: str,
        match_pattern: str,
        clean_name: Optional[str] = None,
        category_id: Optional[int] = None,
        is_recurring: bool = False,
        priority: int = 0,
        apply_to_existing: bool = False,
    ) -> tuple[CategoryRule, int]:
        """Create a categorization rule, optionally backfilling transactions.

        An existing rule with the same pattern is returned unchanged.

        Args:
            user_id: Owner of the rule
            match_pattern: Substring or SQL LIKE pattern
            clean_name: Merchant name to assign
            category_id: Category to assign
            is_recurring: Mark matches as recurring
            priority: Base priority among the user's rules
            apply_to_existing: Update already-imported matching transactions

        Returns:
            (rule, number of transactions updated by the backfill)

        Raises:
            ValueError: If the pattern is empty
        """
        if not normalize_pattern(match_pattern.strip()):
            raise ValueError("Rule pattern cannot be empty")

        existing = self.db.find_rule_by_pattern(user_id, match_pattern)
        if existing is not None:
            return existing, 0

        rule_id = self.db.create_rule(
            user_id=user_id,
            match_pattern=match_pattern,
            clean_name=clean_name or None,
            category_id=category_id,
            is_recurring=is_recurring,
            priority=priority,
        )
        rule = self.db.get_rule(rule_id)
        self.invalidate(user_id)

        updated = 0
        if apply_to_existing:
            try:
                updated = self.db.update_transactions_merchant(user_id, match_pattern, clean_name, category_id)
            except PersistenceError as e:
                # The rule exists either way; only the backfill is lost.
                logger.warning("backfill for rule %s failed: %s", rule_id, e)
        return rule, updated

    def create_merchant(
        self,
        raw_pattern: str,
        clean_name: str,
        user_id: Optional[str] = None,
        category_id: Optional[int] = None,
    ) -> int:
        """Create a merchant. System merchants (no user) invalidate every user's cache.

        Returns:
            Merchant ID

        Raises:
            ValueError: If the pattern or clean name is empty
        """
        if not normalize_pattern(raw_pattern.strip()):
            raise ValueError("Merchant pattern cannot be empty")
        if not clean_name.strip():
            raise ValueError("Merchant name cannot be empty")

        merchant_id = self.db.create_merchant(raw_pattern, clean_name.strip(), user_id, category_id)
        if user_id is None:
            self.invalidate_all()
        else:
            self.invalidate(user_id)
        return merchant_id

    def seed_system_merchants(self) -> int:
        """Add the built-in merchant catalog, skipping patterns already present.

        Returns:
            Number of merchants created
        """
        present = {m.raw_pattern for m in self.db.get_merchants(None)}
        created = 0
        for pattern, name in DEFAULT_MERCHANTS:
            if pattern in present:
                continue
            self.db.create_merchant(pattern, name)
            created += 1
        if created:
            self.invalidate_all()
        return created

    # -- exact categorization ---------------------------------------------

    def categorize(self, user_id: str, description: str) -> CategorizationResult:
        """Categorize one description with the exact engine."""
        return self.categorize_batch(user_id, [description])[0]

    def categorize_batch(self, user_id: str, descriptions: Sequence[str]) -> list[CategorizationResult]:
        """Categorize many descriptions with one engine lookup.

        Never raises for matcher problems: on failure every description gets
        its cleaned form and no category.

        Returns:
            One result per description, in input order
        """
        results = [CategorizationResult(clean_merchant_name=clean_description(d)) for d in descriptions]
        if not descriptions:
            return results

        try:
            matches = self.engines.get_or_build(user_id).match_batch(descriptions)
        except Exception as e:
            logger.warning("categorization unavailable for %s, using cleaned descriptions: %s", user_id, e)
            return results

        for i, match in enumerate(matches):
            if match is None:
                continue
            results[i] = _apply(
                results[i], match.clean_name, match.category_id, match.is_recurring, match.rule_id, match.merchant_id
            )
        return results

    # -- fuzzy categorization ---------------------------------------------

    def categorize_fuzzy(
        self, user_id: str, description: str, threshold: Optional[int] = None
    ) -> CategorizationResult:
        """Categorize with approximate matching only."""
        result = CategorizationResult(clean_merchant_name=clean_description(description))
        try:
            matcher = self.fuzzy_matchers.get_or_build(user_id)
        except CategorizationError as e:
            logger.warning("fuzzy matching unavailable for %s: %s", user_id, e)
            return result

        match = matcher.match(description, self.fuzzy_threshold if threshold is None else threshold)
        if match is None:
            return result
        return _apply(result, match.clean_name, match.category_id, match.is_recurring, match.rule_id, match.merchant_id)

    def categorize_with_fallback(
        self, user_id: str, description: str, fuzzy_threshold: Optional[int] = None
    ) -> CategorizationResult:
        """Try the exact engine first, then fuzzy matching."""
        result = self.categorize(user_id, description)
        if result.matched:
            return result
        return self.categorize_fuzzy(user_id, description, fuzzy_threshold)

    def suggest_merchant_matches(self, user_id: str, description: str, limit: int = 5) -> list[FuzzyMatchResult]:
        """Top fuzzy matches for a description, best first.

        Raises:
            CategorizationError: If the matcher cannot be built
        """
        return self.fuzzy_matchers.get_or_build(user_id).rank_matches(description, limit)

    def group_similar_merchants(
        self, descriptions: Sequence[str], threshold: Optional[int] = None
    ) -> dict[str, list[str]]:
        """Cluster similar descriptions; keys are the first-seen member of each group."""
        return FuzzyMatcher.find_similar_merchants(
            descriptions, self.fuzzy_threshold if threshold is None else threshold
        )

    # -- search -----------------------------------------------------------

    @property
    def search_enabled(self) -> bool:
        return self.search_index is not None

    def search_merchants(self, query: str, limit: int = DEFAULT_LIMIT) -> list[SearchResult]:
        if self.search_index is None:
            return []
        return self.search_index.search(query, limit)

    def search_merchants_with_prefix(self, prefix: str, limit: int = DEFAULT_LIMIT) -> list[SearchResult]:
        if self.search_index is None:
            return []
        return self.search_index.search_prefix(prefix, limit)

    def search_merchants_fuzzy(self, term: str, fuzziness: int = 1, limit: int = DEFAULT_LIMIT) -> list[SearchResult]:
        if self.search_index is None:
            return []
        return self.search_index.search_fuzzy(term, fuzziness, limit)

    def search_merchants_advanced(self, query_string: str, limit: int = DEFAULT_LIMIT) -> list[SearchResult]:
        """Boolean search, e.g. ``+coffee -airport``."""
        if self.search_index is None:
            return []
        return self.search_index.search_advanced(query_string, limit)

    def search_by_category(self, category_id: int, limit: int = DEFAULT_CATEGORY_LIMIT) -> list[SearchResult]:
        if self.search_index is None:
            return []
        return self.search_index.search_by_category(category_id, limit)

    def rebuild_search_index(self, user_id: str) -> int:
        """Reindex a user's rules and the merchants visible to them.

        Returns:
            Number of indexed documents (0 when search is disabled)
        """
        if self.search_index is None:
            return 0
        with self._search_lock:
            rules = self.get_user_rules(user_id)
            merchants = self.get_merchants(user_id)
            self.search_index.clear()
            self.search_index.index_rules_and_merchants(rules, merchants)
            return self.search_index.document_count()
