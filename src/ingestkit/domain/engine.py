"""Exact multi-pattern categorization engine.

Matches every rule and merchant pattern in a single pass over the text with
an Aho-Corasick automaton, so lookup cost depends on text length and number
of hits, not on how many patterns are loaded.
"""

from collections import deque
from typing import Iterable, Iterator, Optional, Sequence

from ingestkit.domain.entities import CategoryRule, MatchResult, Merchant
from ingestkit.logging_setup import get_logger
from ingestkit.utils.rwlock import RWLock

logger = get_logger(__name__)

RULE_PRIORITY_OFFSET = 1000
USER_MERCHANT_PRIORITY = 100
SYSTEM_MERCHANT_PRIORITY = 0


def normalize_pattern(pattern: str) -> str:
    """Strip SQL LIKE wildcards and uppercase."""
    return pattern.strip("%").upper()


def rule_priority(rule: CategoryRule) -> int:
    return rule.priority + RULE_PRIORITY_OFFSET


def merchant_priority(merchant: Merchant) -> int:
    return SYSTEM_MERCHANT_PRIORITY if merchant.is_system else USER_MERCHANT_PRIORITY


def rank_key(entry: MatchResult, arena_order: int) -> tuple:
    """Sort key: highest priority, then rules, then lowest source id, then build order."""
    source_id = entry.source_id
    return (
        -entry.priority,
        0 if entry.is_rule else 1,
        source_id if source_id is not None else 0,
        arena_order,
    )


def group_patterns(
    rules: Iterable[CategoryRule], merchants: Iterable[Merchant]
) -> tuple[tuple[str, ...], tuple[tuple[tuple, MatchResult], ...]]:
    """Group rule and merchant metadata by normalized pattern.

    Returns:
        (patterns, arena) where ``arena[i]`` holds the ranked entries of
        ``patterns[i]`` as ``(rank_key, MatchResult)`` pairs
    """
    index: dict[str, int] = {}
    patterns: list[str] = []
    groups: list[list[tuple[tuple, MatchResult]]] = []
    order = 0

    def add(pattern: str, entry: MatchResult) -> None:
        nonlocal order
        if pattern not in index:
            index[pattern] = len(patterns)
            patterns.append(pattern)
            groups.append([])
        groups[index[pattern]].append((rank_key(entry, order), entry))
        order += 1

    for rule in rules:
        pattern = normalize_pattern(rule.match_pattern)
        if not pattern:
            continue
        add(
            pattern,
            MatchResult(
                pattern=pattern,
                clean_name=rule.clean_name or "",
                priority=rule_priority(rule),
                is_rule=True,
                category_id=rule.category_id,
                is_recurring=rule.is_recurring,
                rule_id=rule.id,
            ),
        )

    for merchant in merchants:
        pattern = normalize_pattern(merchant.raw_pattern)
        if not pattern:
            continue
        add(
            pattern,
            MatchResult(
                pattern=pattern,
                clean_name=merchant.clean_name,
                priority=merchant_priority(merchant),
                is_rule=False,
                category_id=merchant.category_id,
                merchant_id=merchant.id,
            ),
        )

    return tuple(patterns), tuple(tuple(group) for group in groups)


class Automaton:
    """Aho-Corasick automaton over a fixed list of patterns."""

    def __init__(self, patterns: Sequence[str]):
        self._goto: list[dict[str, int]] = [{}]
        self._fail: list[int] = [0]
        self._out: list[tuple[int, ...]] = [()]

        for pattern_id, pattern in enumerate(patterns):
            node = 0
            for ch in pattern:
                nxt = self._goto[node].get(ch)
                if nxt is None:
                    nxt = len(self._goto)
                    self._goto[node][ch] = nxt
                    self._goto.append({})
                    self._fail.append(0)
                    self._out.append(())
                node = nxt
            self._out[node] = self._out[node] + (pattern_id,)

        # Breadth-first failure links; outputs inherit from the failure target.
        pending = deque(self._goto[0].values())
        while pending:
            node = pending.popleft()
            for ch, child in self._goto[node].items():
                pending.append(child)
                fallback = self._fail[node]
                while fallback and ch not in self._goto[fallback]:
                    fallback = self._fail[fallback]
                self._fail[child] = self._goto[fallback].get(ch, 0)
                self._out[child] = self._out[child] + self._out[self._fail[child]]

    @property
    def node_count(self) -> int:
        return len(self._goto)

    def iter_matches(self, text: str) -> Iterator[int]:
        """Yield the id of every pattern occurrence in ``text``."""
        goto = self._goto
        fail = self._fail
        out = self._out
        node = 0
        for ch in text:
            while node and ch not in goto[node]:
                node = fail[node]
            node = goto[node].get(ch, 0)
            if out[node]:
                yield from out[node]


class CategorizationEngine:
    """Priority-resolved exact matcher over rules and merchants.

    Safe for concurrent use: ``build`` takes the lock exclusively, the
    ``match*`` methods share it.
    """

    def __init__(self, rules: Iterable[CategoryRule] = (), merchants: Iterable[Merchant] = ()):
        self._lock = RWLock()
        self._patterns: tuple[str, ...] = ()
        self._arena: tuple[tuple[tuple[tuple, MatchResult], ...], ...] = ()
        self._automaton: Optional[Automaton] = None
        self.build(rules, merchants)

    def build(self, rules: Iterable[CategoryRule], merchants: Iterable[Merchant]) -> None:
        """Rebuild the automaton from scratch."""
        patterns, arena = group_patterns(rules, merchants)
        automaton = Automaton(patterns) if patterns else None
        with self._lock.write():
            self._patterns = patterns
            self._arena = arena
            self._automaton = automaton
        logger.debug("engine built with %d unique patterns", len(patterns))

    def _matched_entries(self, text: str) -> list[tuple[tuple, MatchResult]]:
        if self._automaton is None or not text:
            return []
        seen: set[int] = set()
        entries: list[tuple[tuple, MatchResult]] = []
        for pattern_id in self._automaton.iter_matches(text.upper()):
            if pattern_id in seen:
                continue
            seen.add(pattern_id)
            entries.extend(self._arena[pattern_id])
        return entries

    def _best(self, text: str) -> Optional[MatchResult]:
        entries = self._matched_entries(text)
        if not entries:
            return None
        return min(entries, key=lambda item: item[0])[1]

    def match(self, text: str) -> Optional[MatchResult]:
        """Return the highest-priority match for ``text``, or None."""
        with self._lock.read():
            return self._best(text)

    def match_all(self, text: str) -> list[MatchResult]:
        """Return every matching entry, best first."""
        with self._lock.read():
            entries = self._matched_entries(text)
        return [entry for _, entry in sorted(entries, key=lambda item: item[0])]

    def match_batch(self, texts: Sequence[str]) -> list[Optional[MatchResult]]:
        """Match many texts under a single shared-lock acquisition."""
        with self._lock.read():
            return [self._best(text) for text in texts]

    def pattern_count(self) -> int:
        with self._lock.read():
            return len(self._patterns)

    def is_empty(self) -> bool:
        return self.pattern_count() == 0

    def metadata_for(self, pattern: str) -> tuple[MatchResult, ...]:
        """Return the merged metadata entries stored for one pattern."""
        normalized = normalize_pattern(pattern)
        with self._lock.read():
            try:
                idx = self._patterns.index(normalized)
            except ValueError:
                return ()
            return tuple(entry for _, entry in self._arena[idx])
