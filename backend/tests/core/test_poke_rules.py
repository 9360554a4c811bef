"""Poke Rules — validation order, pair limit and leader selection."""

from meethalf.core.poke_rules import (
    MAX_POKES_PER_PAIR, PokeTally, poke_push_body, summarize_pokes, validate_poke,
)


def test_valid_poke_returns_none():
    assert validate_poke(1, 10, 1, 11, 1, existing_count=0) is None


def test_members_from_other_event_rejected_first():
    error = validate_poke(1, 10, 2, 10, 1, existing_count=5)
    assert error["error_code"] == "MEMBERS_NOT_IN_EVENT"


def test_self_poke_rejected():
    error = validate_poke(1, 10, 1, 10, 1, existing_count=0)
    assert error["status"] == "error"
    assert error["error_code"] == "CANNOT_POKE_SELF"


def test_fourth_poke_of_a_pair_rejected():
    assert validate_poke(1, 10, 1, 11, 1, existing_count=MAX_POKES_PER_PAIR - 1) is None
    error = validate_poke(1, 10, 1, 11, 1, existing_count=MAX_POKES_PER_PAIR)
    assert error["error_code"] == "POKE_LIMIT_EXCEEDED"


def test_summary_of_no_pokes():
    assert summarize_pokes([]) == (None, None, 0, {})


def test_summary_ties_resolve_to_first_seen():
    most_poked, most_poker, total, received = summarize_pokes([(1, 2), (2, 3)])
    assert most_poked == PokeTally(2, 1)
    assert most_poker == PokeTally(1, 1)
    assert total == 2
    assert received == {2: 1, 3: 1}


def test_summary_picks_strict_maximum():
    most_poked, _, _, _ = summarize_pokes([(1, 2), (1, 3), (2, 3)])
    assert most_poked == PokeTally(3, 2)


def test_push_body_shows_count_after_first_poke():
    assert poke_push_body("Alice", 1) == "Alice poked you"
    assert poke_push_body("Alice", 3) == "Alice poked you (3 times)"
