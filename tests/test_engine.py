"""Tests for the exact categorization engine."""

import threading
import time

from ingestkit.domain.engine import (
    Automaton,
    CategorizationEngine,
    group_patterns,
    normalize_pattern,
)
from ingestkit.domain.entities import CategoryRule, Merchant


def rule(id, pattern, name=None, priority=0, category_id=None, recurring=False, user_id="u"):
    return CategoryRule(
        id=id,
        user_id=user_id,
        match_pattern=pattern,
        clean_name=name,
        category_id=category_id,
        is_recurring=recurring,
        priority=priority,
    )


def merchant(id, pattern, name, user_id=None, category_id=None):
    return Merchant(id=id, raw_pattern=pattern, clean_name=name, user_id=user_id, category_id=category_id)


def test_normalize_pattern():
    """Test wildcard stripping and uppercasing."""
    assert normalize_pattern("%netflix%") == "NETFLIX"
    assert normalize_pattern("%%") == ""


def test_automaton_finds_overlapping_patterns():
    """Test that every occurrence, including overlaps, is reported."""
    automaton = Automaton(["HE", "SHE", "HIS", "HERS"])
    found = sorted(set(automaton.iter_matches("USHERS")))
    assert found == [0, 1, 3]


def test_match_is_case_insensitive():
    """Test matching lowercase text against uppercase patterns."""
    engine = CategorizationEngine(merchants=[merchant(1, "%NETFLIX%", "Netflix")])
    match = engine.match("compra netflix.com 1234")
    assert match is not None
    assert match.clean_name == "Netflix"
    assert match.merchant_id == 1


def test_no_match():
    """Test text without any pattern."""
    engine = CategorizationEngine(merchants=[merchant(1, "%NETFLIX%", "Netflix")])
    assert engine.match("SALARY") is None
    assert engine.match("") is None
    assert CategorizationEngine().is_empty()


def test_rule_beats_user_merchant_beats_system_merchant():
    """Test source priority ordering."""
    engine = CategorizationEngine(
        rules=[rule(5, "UBER EATS", "Dinner", category_id=3)],
        merchants=[
            merchant(1, "%UBER%", "Uber"),
            merchant(2, "%UBER EATS%", "Uber Eats (mine)", user_id="u"),
        ],
    )
    match = engine.match("UBER EATS LISBOA")
    assert match.is_rule
    assert match.rule_id == 5
    assert match.category_id == 3

    engine = CategorizationEngine(
        merchants=[merchant(1, "%UBER%", "Uber"), merchant(2, "%UBER EATS%", "Uber Eats (mine)", user_id="u")]
    )
    assert engine.match("UBER EATS LISBOA").merchant_id == 2


def test_higher_rule_priority_wins():
    """Test that rule priority orders competing rules."""
    engine = CategorizationEngine(rules=[rule(1, "AMAZON", "Amazon"), rule(2, "AMAZON PRIME", "Prime", priority=5)])
    assert engine.match("AMAZON PRIME VIDEO").rule_id == 2


def test_equal_priority_prefers_lowest_id():
    """Test the tie-break on source ID."""
    engine = CategorizationEngine(merchants=[merchant(9, "%SHOP%", "Shop B"), merchant(4, "%MY SHOP%", "Shop A")])
    assert engine.match("MY SHOP").merchant_id == 4


def test_shared_pattern_is_merged():
    """Test that one pattern keeps metadata from every source."""
    rules = [rule(1, "NETFLIX", "Netflix Rule", recurring=True)]
    merchants = [merchant(7, "%NETFLIX%", "Netflix")]
    patterns, arena = group_patterns(rules, merchants)
    assert patterns == ("NETFLIX",)
    assert len(arena[0]) == 2

    engine = CategorizationEngine(rules, merchants)
    assert engine.pattern_count() == 1
    entries = engine.metadata_for("%netflix%")
    assert [e.is_rule for e in entries] == [True, False]
    assert engine.match("NETFLIX.COM").is_recurring


def test_match_all_orders_by_priority():
    """Test that match_all returns every hit best first."""
    engine = CategorizationEngine(
        rules=[rule(1, "NETFLIX", "Netflix Rule")],
        merchants=[merchant(7, "%NETFLIX%", "Netflix"), merchant(8, "%COM%", "Generic")],
    )
    matches = engine.match_all("NETFLIX.COM")
    assert [(m.is_rule, m.rule_id or m.merchant_id) for m in matches] == [(True, 1), (False, 7), (False, 8)]


def test_match_batch_keeps_order():
    """Test batch matching preserves input order."""
    engine = CategorizationEngine(merchants=[merchant(1, "%NETFLIX%", "Netflix"), merchant(2, "%LIDL%", "Lidl")])
    results = engine.match_batch(["LIDL 123", "nothing", "NETFLIX"])
    assert [r.clean_name if r else None for r in results] == ["Lidl", None, "Netflix"]


def test_empty_patterns_are_ignored():
    """Test that wildcard-only patterns are dropped."""
    engine = CategorizationEngine(rules=[rule(1, "%%", "Everything")])
    assert engine.is_empty()
    assert engine.match("ANYTHING") is None


def test_rebuild_replaces_patterns():
    """Test rebuilding the engine."""
    engine = CategorizationEngine(merchants=[merchant(1, "%LIDL%", "Lidl")])
    engine.build([], [merchant(2, "%ALDI%", "Aldi")])
    assert engine.match("LIDL") is None
    assert engine.match("ALDI").merchant_id == 2


def _batch_seconds(engine, texts, rounds=5):
    best = float("inf")
    for _ in range(rounds):
        start = time.perf_counter()
        engine.match_batch(texts)
        best = min(best, time.perf_counter() - start)
    return best


def test_match_batch_time_does_not_grow_with_pattern_count():
    """Test that doubling the patterns leaves batch matching time roughly flat."""
    texts = [f"CARD PAYMENT {i:04d} GROCERY STORE AMSTERDAM" for i in range(2000)]
    small = CategorizationEngine(merchants=[merchant(i, f"%VENDOR{i:05d}%", f"V{i}") for i in range(500)])
    large = CategorizationEngine(merchants=[merchant(i, f"%VENDOR{i:05d}%", f"V{i}") for i in range(1000)])
    assert large.pattern_count() == 2 * small.pattern_count()

    _batch_seconds(small, texts, rounds=1)
    _batch_seconds(large, texts, rounds=1)
    assert _batch_seconds(large, texts) < _batch_seconds(small, texts) * 3


class TestConcurrency:
    """Tests for matching while the engine is rebuilt."""

    def test_match_waits_for_build(self):
        engine = CategorizationEngine(merchants=[merchant(1, "%LIDL%", "Lidl")])
        results = []

        with engine._lock.write():
            reader = threading.Thread(target=lambda: results.append(engine.match("LIDL 42")))
            reader.start()
            reader.join(0.2)
            assert reader.is_alive()
            assert results == []

        reader.join(5)
        assert not reader.is_alive()
        assert results[0].clean_name == "Lidl"

    def test_match_sees_whole_builds(self):
        lidl = ([], [merchant(1, "%LIDL%", "Lidl"), merchant(2, "%SHOP%", "Lidl Shop")])
        aldi = ([], [merchant(3, "%ALDI%", "Aldi"), merchant(4, "%SHOP%", "Aldi Shop")])
        engine = CategorizationEngine(*lidl)
        stop = threading.Event()
        seen = []

        def read():
            while not stop.is_set():
                names = [r.clean_name if r else None for r in engine.match_batch(["LIDL SHOP", "ALDI SHOP"])]
                seen.append(tuple(names))

        readers = [threading.Thread(target=read) for _ in range(4)]
        for thread in readers:
            thread.start()
        try:
            for i in range(200):
                engine.build(*(aldi if i % 2 else lidl))
        finally:
            stop.set()
            for thread in readers:
                thread.join(5)

        assert seen
        assert set(seen) <= {("Lidl", "Lidl Shop"), ("Aldi Shop", "Aldi")}
