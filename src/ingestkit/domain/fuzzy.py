"""Approximate merchant matching.

Catches variations the exact engine misses ("STARBUCKS 001" vs
"STARBUCKS") by scoring every pattern against the description.
"""

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from rapidfuzz.distance import Levenshtein

from ingestkit.domain.engine import merchant_priority, normalize_pattern, rule_priority
from ingestkit.domain.entities import CategoryRule, FuzzyMatchResult, Merchant
from ingestkit.utils.rwlock import RWLock


def levenshtein(a: str, b: str) -> int:
    """Edit distance between two strings."""
    return Levenshtein.distance(a, b)


def subsequence_start(text: str, chars: str) -> int:
    """Return where an in-order match of ``chars`` inside ``text`` begins, or -1."""
    if not chars:
        return -1
    start = text.find(chars[0])
    if start < 0:
        return -1
    pos = start + 1
    for ch in chars[1:]:
        pos = text.find(ch, pos)
        if pos < 0:
            return -1
        pos += 1
    return start


def score_with_distance(a: str, b: str) -> tuple[int, int]:
    """Return ``(fuzzy_score(a, b), levenshtein(a, b))`` with one distance computation."""
    distance = levenshtein(a, b)
    if a == b:
        return 100, distance
    if b and b in a:
        return 75 + 25 * len(b) // len(a), distance
    if a and a in b:
        return 75 + 25 * len(a) // len(b), distance

    max_len = max(len(a), len(b))
    if max_len == 0:
        return 0, distance
    levenshtein_score = 100 * (max_len - distance) // max_len

    subsequence_score = 0
    start = subsequence_start(a, b)
    if 0 <= start < len(a):
        subsequence_score = 60 - start * 40 // len(a)

    return max(levenshtein_score, subsequence_score), distance


def fuzzy_score(a: str, b: str) -> int:
    """Similarity of two strings on a 0-100 scale.

    Equal strings score 100 and containment scores 75-100 by length ratio.
    Otherwise the better of an edit-distance score and a subsequence score
    that rewards ``b`` appearing in order early in ``a``.
    """
    return score_with_distance(a, b)[0]


@dataclass(frozen=True)
class _Pattern:
    normalized: str
    clean_name: str
    priority: int
    is_rule: bool
    category_id: Optional[int]
    is_recurring: bool
    rule_id: Optional[int]
    merchant_id: Optional[int]

    def result(self, score: int, distance: int) -> FuzzyMatchResult:
        return FuzzyMatchResult(
            pattern=self.normalized,
            clean_name=self.clean_name,
            score=score,
            distance=distance,
            is_rule=self.is_rule,
            priority=self.priority,
            category_id=self.category_id,
            is_recurring=self.is_recurring,
            rule_id=self.rule_id,
            merchant_id=self.merchant_id,
        )


def _rank(result: FuzzyMatchResult, order: int) -> tuple:
    source_id = result.rule_id if result.is_rule else result.merchant_id
    return (-result.score, -result.priority, 0 if result.is_rule else 1, source_id or 0, order)


class FuzzyMatcher:
    """Linear-scan fuzzy matcher with the same priorities as the exact engine."""

    def __init__(self, rules: Iterable[CategoryRule] = (), merchants: Iterable[Merchant] = ()):
        self._lock = RWLock()
        self._patterns: tuple[_Pattern, ...] = ()
        self.build(rules, merchants)

    def build(self, rules: Iterable[CategoryRule], merchants: Iterable[Merchant]) -> None:
        patterns = []
        for rule in rules:
            normalized = normalize_pattern(rule.match_pattern)
            if normalized:
                patterns.append(
                    _Pattern(
                        normalized=normalized,
                        clean_name=rule.clean_name or "",
                        priority=rule_priority(rule),
                        is_rule=True,
                        category_id=rule.category_id,
                        is_recurring=rule.is_recurring,
                        rule_id=rule.id,
                        merchant_id=None,
                    )
                )
        for merchant in merchants:
            normalized = normalize_pattern(merchant.raw_pattern)
            if normalized:
                patterns.append(
                    _Pattern(
                        normalized=normalized,
                        clean_name=merchant.clean_name,
                        priority=merchant_priority(merchant),
                        is_rule=False,
                        category_id=merchant.category_id,
                        is_recurring=False,
                        rule_id=None,
                        merchant_id=merchant.id,
                    )
                )
        with self._lock.write():
            self._patterns = tuple(patterns)

    def _scored(self, text: str) -> list[tuple[tuple, FuzzyMatchResult]]:
        normalized = text.upper()
        scored = []
        with self._lock.read():
            for order, pattern in enumerate(self._patterns):
                score, distance = score_with_distance(normalized, pattern.normalized)
                result = pattern.result(score, distance)
                scored.append((_rank(result, order), result))
        scored.sort(key=lambda item: item[0])
        return scored

    def match(self, text: str, threshold: int) -> Optional[FuzzyMatchResult]:
        """Return the best match scoring at least ``threshold``, or None.

        Equal scores are broken by higher priority.
        """
        scored = self._scored(text)
        if not scored or scored[0][1].score < threshold:
            return None
        return scored[0][1]

    def match_all(self, text: str, threshold: int) -> list[FuzzyMatchResult]:
        """Return every match scoring at least ``threshold``, best first."""
        return [result for _, result in self._scored(text) if result.score >= threshold]

    def rank_matches(self, text: str, limit: int = 0) -> list[FuzzyMatchResult]:
        """Return all patterns ranked by similarity; ``limit`` <= 0 means all."""
        ranked = [result for _, result in self._scored(text)]
        if 0 < limit < len(ranked):
            ranked = ranked[:limit]
        return ranked

    def pattern_count(self) -> int:
        with self._lock.read():
            return len(self._patterns)

    @staticmethod
    def find_similar_merchants(descriptions: Sequence[str], threshold: int) -> dict[str, list[str]]:
        """Greedily cluster descriptions.

        Each unassigned description, in input order, seeds a group and pulls
        in every later unassigned description scoring at least ``threshold``
        against it. The seed is the group's key; keys keep seed order.
        """
        groups: dict[str, list[str]] = {}
        assigned = [False] * len(descriptions)

        for i, seed in enumerate(descriptions):
            if assigned[i]:
                continue
            assigned[i] = True
            group = [seed]
            upper_seed = seed.upper()
            for j in range(i + 1, len(descriptions)):
                if assigned[j]:
                    continue
                if fuzzy_score(upper_seed, descriptions[j].upper()) >= threshold:
                    group.append(descriptions[j])
                    assigned[j] = True
            groups.setdefault(seed, []).extend(group)

        return groups
