# tests/services/test_reaction_engine.py
"""Tests for like/dislike toggling and counting."""

import pytest

from marginalia.services.reactions import ReactionCounts, ReactionEngine, ReactionOutcome

ALICE = "a" * 64
BOB = "b" * 64
CAROL = "c" * 64


@pytest.fixture
def engine_(db_session, clock) -> ReactionEngine:
    return ReactionEngine(db_session, clock=clock)


@pytest.fixture
def comment(published_post, make_comment):
    return make_comment(published_post)


class TestReact:
    def test_first_reaction_is_added(self, engine_, comment):
        assert engine_.react(comment.id, ALICE, "like") is ReactionOutcome.ADDED
        assert engine_.get_counts(comment.id) == ReactionCounts(like=1, dislike=0)

    def test_same_reaction_toggles_off(self, engine_, comment):
        engine_.react(comment.id, ALICE, "like")
        assert engine_.react(comment.id, ALICE, "like") is ReactionOutcome.REMOVED
        assert engine_.get_counts(comment.id) == ReactionCounts()

    def test_other_reaction_replaces(self, engine_, comment):
        engine_.react(comment.id, ALICE, "like")
        assert engine_.react(comment.id, ALICE, "dislike") is ReactionOutcome.UPDATED
        assert engine_.get_counts(comment.id) == ReactionCounts(like=0, dislike=1)

    def test_one_reaction_per_identity(self, engine_, comment):
        engine_.react(comment.id, ALICE, "like")
        engine_.react(comment.id, BOB, "like")
        engine_.react(comment.id, CAROL, "dislike")
        engine_.react(comment.id, CAROL, "like")
        counts = engine_.get_counts(comment.id)
        assert counts == ReactionCounts(like=3, dislike=0)
        assert counts.total == 3

    def test_unknown_type_is_rejected(self, engine_, comment):
        with pytest.raises(ValueError):
            engine_.react(comment.id, ALICE, "love")


class TestInsertRace:
    """The insert path when another request stored the same identity's row first."""

    @pytest.fixture
    def miss_first_lookup(self, engine_, mocker):
        original = engine_._existing
        lookups: list[int] = []

        def existing_after_first_miss(comment_id, identity):
            lookups.append(1)
            if len(lookups) == 1:
                return None
            return original(comment_id, identity)

        mocker.patch.object(engine_, "_existing", side_effect=existing_after_first_miss)
        return lookups

    def test_same_type_collision_toggles_off(self, engine_, comment, miss_first_lookup):
        engine_.react(comment.id, ALICE, "like")
        miss_first_lookup.clear()
        assert engine_.react(comment.id, ALICE, "like") is ReactionOutcome.REMOVED
        assert len(miss_first_lookup) == 2
        assert engine_.get_counts(comment.id) == ReactionCounts()

    def test_other_type_collision_switches(self, engine_, comment, miss_first_lookup):
        engine_.react(comment.id, ALICE, "like")
        miss_first_lookup.clear()
        assert engine_.react(comment.id, ALICE, "dislike") is ReactionOutcome.UPDATED
        assert engine_.get_counts(comment.id) == ReactionCounts(like=0, dislike=1)

    def test_winner_row_is_never_doubled(self, engine_, comment, miss_first_lookup):
        engine_.react(comment.id, ALICE, "like")
        engine_.react(comment.id, BOB, "like")
        miss_first_lookup.clear()
        engine_.react(comment.id, BOB, "dislike")
        assert engine_.get_counts(comment.id) == ReactionCounts(like=1, dislike=1)


class TestClear:
    def test_clear_existing(self, engine_, comment):
        engine_.react(comment.id, ALICE, "dislike")
        assert engine_.clear(comment.id, ALICE) is True
        assert engine_.get_counts(comment.id).total == 0

    def test_clear_without_reaction(self, engine_, comment):
        assert engine_.clear(comment.id, ALICE) is False

    def test_reacting_again_after_clear_adds(self, engine_, comment):
        engine_.react(comment.id, ALICE, "like")
        engine_.clear(comment.id, ALICE)
        assert engine_.react(comment.id, ALICE, "like") is ReactionOutcome.ADDED


class TestCounts:
    def test_counts_for_several_comments(self, engine_, published_post, make_comment):
        first = make_comment(published_post)
        second = make_comment(published_post)
        quiet = make_comment(published_post)
        engine_.react(first.id, ALICE, "like")
        engine_.react(first.id, BOB, "dislike")
        engine_.react(second.id, ALICE, "dislike")

        counts = engine_.counts_for([first.id, second.id, quiet.id])
        assert counts[first.id] == ReactionCounts(like=1, dislike=1)
        assert counts[second.id] == ReactionCounts(like=0, dislike=1)
        assert counts[quiet.id] == ReactionCounts()

    def test_counts_for_nothing(self, engine_):
        assert engine_.counts_for([]) == {}
