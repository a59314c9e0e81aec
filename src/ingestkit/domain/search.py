"""In-memory full-text search over rules and merchants.

A ranked suggestion layer for autocomplete and lookup screens. It never
decides categorization; the exact engine's priorities do.
"""

import math
import re
from collections import Counter
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from rapidfuzz.distance import Levenshtein

from ingestkit.domain.engine import merchant_priority, rule_priority
from ingestkit.domain.entities import CategoryRule, Merchant, SearchDocument, SearchResult
from ingestkit.utils.rwlock import RWLock

DEFAULT_LIMIT = 10
DEFAULT_CATEGORY_LIMIT = 100
MAX_FUZZINESS = 2

TEXT_FIELDS = ("clean_name", "description")
KEYWORD_FIELDS = ("pattern", "category_id", "type", "user_id")

_NON_ALNUM = re.compile(r"[\W_]+")


def analyze(text: str) -> list[str]:
    """Lowercase and split on non-alphanumerics."""
    return [token for token in _NON_ALNUM.split(text.lower()) if token]


def rule_document(rule: CategoryRule) -> SearchDocument:
    clean_name = rule.clean_name or ""
    return SearchDocument(
        id=f"rule_{rule.id}",
        pattern=rule.match_pattern,
        clean_name=clean_name,
        description=f"{rule.match_pattern} {clean_name}",
        category_id=str(rule.category_id) if rule.category_id is not None else "",
        type="rule",
        priority=float(rule_priority(rule)),
        user_id=rule.user_id,
    )


def merchant_document(merchant: Merchant) -> SearchDocument:
    return SearchDocument(
        id=f"merchant_{merchant.id}",
        pattern=merchant.raw_pattern,
        clean_name=merchant.clean_name,
        description=f"{merchant.raw_pattern} {merchant.clean_name}",
        category_id=str(merchant.category_id) if merchant.category_id is not None else "",
        type="merchant",
        priority=float(merchant_priority(merchant)),
        user_id=merchant.user_id or "",
    )


@dataclass(frozen=True)
class _Indexed:
    document: SearchDocument
    terms: Counter
    field_terms: dict


@dataclass(frozen=True)
class _Clause:
    occur: str  # "must", "must_not" or "should"
    field: Optional[str]
    value: str


def parse_query_string(query_string: str) -> list[_Clause]:
    """Parse ``+must -must_not should field:value`` syntax."""
    clauses = []
    for token in query_string.split():
        occur = "should"
        if token[0] == "+":
            occur, token = "must", token[1:]
        elif token[0] == "-":
            occur, token = "must_not", token[1:]
        if not token:
            continue
        field = None
        if ":" in token:
            name, _, value = token.partition(":")
            if name in TEXT_FIELDS or name in KEYWORD_FIELDS:
                field, token = name, value
        if token:
            clauses.append(_Clause(occur, field, token))
    return clauses


class SearchIndex:
    """Inverted index with relevance, prefix, fuzzy and boolean queries."""

    def __init__(self) -> None:
        self._lock = RWLock()
        self._docs: dict[str, _Indexed] = {}
        self._doc_freq: Counter = Counter()

    # -- indexing ---------------------------------------------------------

    def _add(self, doc: SearchDocument) -> None:
        self._remove(doc.id)
        field_terms = {name: Counter(analyze(getattr(doc, name))) for name in TEXT_FIELDS}
        terms = Counter()
        for counter in field_terms.values():
            terms.update(counter)
        self._docs[doc.id] = _Indexed(doc, terms, field_terms)
        self._doc_freq.update(terms.keys())

    def _remove(self, doc_id: str) -> None:
        indexed = self._docs.pop(doc_id, None)
        if indexed is None:
            return
        self._doc_freq.subtract(indexed.terms.keys())
        self._doc_freq += Counter()

    def index_document(self, doc: SearchDocument) -> None:
        """Add or replace one document."""
        with self._lock.write():
            self._add(doc)

    def delete_document(self, doc_id: str) -> None:
        with self._lock.write():
            self._remove(doc_id)

    def index_rules_and_merchants(self, rules: Iterable[CategoryRule], merchants: Iterable[Merchant]) -> None:
        """Index every rule and merchant as a document."""
        docs = [rule_document(r) for r in rules] + [merchant_document(m) for m in merchants]
        with self._lock.write():
            for doc in docs:
                self._add(doc)

    def clear(self) -> None:
        with self._lock.write():
            self._docs.clear()
            self._doc_freq.clear()

    def document_count(self) -> int:
        with self._lock.read():
            return len(self._docs)

    # -- scoring ----------------------------------------------------------

    def _idf(self, term: str) -> float:
        return 1.0 + math.log((1 + len(self._docs)) / (1 + self._doc_freq[term]))

    def _expand(self, term: str, fuzziness: int) -> list[tuple[str, int]]:
        """Vocabulary terms within ``fuzziness`` edits of ``term``."""
        if fuzziness <= 0:
            return [(term, 0)] if self._doc_freq[term] > 0 else []
        expanded = []
        for candidate in self._doc_freq:
            distance = Levenshtein.distance(term, candidate, score_cutoff=fuzziness)
            if distance <= fuzziness:
                expanded.append((candidate, distance))
        return expanded

    def _term_score(self, terms: Counter, expansions: list[tuple[str, int]]) -> float:
        score = 0.0
        for candidate, distance in expansions:
            tf = terms.get(candidate, 0)
            if tf:
                score += math.sqrt(tf) * self._idf(candidate) / (1 + distance)
        return score

    def _clause_score(self, indexed: _Indexed, clause: _Clause, fuzziness: int) -> float:
        if clause.field in KEYWORD_FIELDS:
            return 1.0 if getattr(indexed.document, clause.field) == clause.value else 0.0
        terms = indexed.field_terms[clause.field] if clause.field else indexed.terms
        score = 0.0
        for term in analyze(clause.value):
            score += self._term_score(terms, self._expand(term, fuzziness))
        return score

    def _collect(self, scorer: Callable[[_Indexed], float], limit: int) -> list[SearchResult]:
        hits = []
        for indexed in self._docs.values():
            score = scorer(indexed)
            if score > 0:
                hits.append((score, indexed.document))
        hits.sort(key=lambda hit: (-hit[0], -hit[1].priority, hit[1].id))
        return [_to_result(doc, score) for score, doc in hits[:limit]]

    # -- queries ----------------------------------------------------------

    def search(self, query: str, limit: int = DEFAULT_LIMIT) -> list[SearchResult]:
        """Relevance search tolerating one typo per term."""
        limit = limit if limit > 0 else DEFAULT_LIMIT
        clause = _Clause("should", None, query)
        with self._lock.read():
            return self._collect(lambda d: self._clause_score(d, clause, 1), limit)

    def search_prefix(self, prefix: str, limit: int = DEFAULT_LIMIT) -> list[SearchResult]:
        """Autocomplete search: documents with a term starting with ``prefix``."""
        limit = limit if limit > 0 else DEFAULT_LIMIT
        prefix = prefix.lower().strip()
        if not prefix:
            return []

        def scorer(indexed: _Indexed) -> float:
            return sum(self._idf(t) for t in indexed.terms if t.startswith(prefix))

        with self._lock.read():
            return self._collect(scorer, limit)

    def search_fuzzy(self, term: str, fuzziness: int = 1, limit: int = DEFAULT_LIMIT) -> list[SearchResult]:
        """Single-term search within ``fuzziness`` edits (clamped to 0..2)."""
        limit = limit if limit > 0 else DEFAULT_LIMIT
        fuzziness = min(max(fuzziness, 0), MAX_FUZZINESS)
        term = term.lower().strip()
        if not term:
            return []
        with self._lock.read():
            expansions = self._expand(term, fuzziness)
            return self._collect(lambda d: self._term_score(d.terms, expansions), limit)

    def search_advanced(self, query_string: str, limit: int = DEFAULT_LIMIT) -> list[SearchResult]:
        """Boolean search.

        ``+term`` must match, ``-term`` must not, bare terms are optional but
        contribute to the score. ``field:value`` targets one field; keyword
        fields (pattern, category_id, type, user_id) match the whole value.
        """
        limit = limit if limit > 0 else DEFAULT_LIMIT
        clauses = parse_query_string(query_string)
        must = [c for c in clauses if c.occur == "must"]
        must_not = [c for c in clauses if c.occur == "must_not"]
        should = [c for c in clauses if c.occur == "should"]
        if not must and not should:
            return []

        def scorer(indexed: _Indexed) -> float:
            if any(self._clause_score(indexed, c, 0) > 0 for c in must_not):
                return 0.0
            total = 0.0
            for clause in must:
                score = self._clause_score(indexed, clause, 0)
                if score <= 0:
                    return 0.0
                total += score
            should_total = sum(self._clause_score(indexed, c, 0) for c in should)
            if not must and should_total <= 0:
                return 0.0
            return total + should_total

        with self._lock.read():
            return self._collect(scorer, limit)

    def search_by_category(self, category_id: int, limit: int = DEFAULT_CATEGORY_LIMIT) -> list[SearchResult]:
        """All documents assigned to one category."""
        limit = limit if limit > 0 else DEFAULT_CATEGORY_LIMIT
        wanted = str(category_id)
        with self._lock.read():
            return self._collect(lambda d: 1.0 if d.document.category_id == wanted else 0.0, limit)


def _to_result(doc: SearchDocument, score: float) -> SearchResult:
    category_id = int(doc.category_id) if doc.category_id.isdigit() else None
    return SearchResult(document=doc, score=score, category_id=category_id)
