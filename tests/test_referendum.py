"""
Referendum Registry Test Suite

Coverage:
  - create: validation order, sequential ids, title index
  - activate: creator-only, pre-start confirmation
  - close: authorization, end-block gating, quorum and tie-break policy
  - lifecycle: forward-only transitions, transition history
"""

import os
import sys

import pytest

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from referenda.clock import BlockClock
from referenda.config import GovernanceConfig
from referenda.exceptions import (
    ErrorCode,
    GovernanceError,
    InvalidStateError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from referenda.governance.referendum import (
    AlreadyClosedError,
    Choice,
    DuplicateTitleError,
    EmptyRewardPoolError,
    InvalidTitleError,
    InvalidWindowError,
    MissingQuizIdError,
    QuorumTooHighError,
    ReferendumRegistry,
    ReferendumStatus,
    TooEarlyError,
    TooLateError,
    WindowInPastError,
)
from referenda.governance.voting import VoteTally


# ══════════════════════════════════════════════════════════════════════
#  HELPERS
# ══════════════════════════════════════════════════════════════════════

ALICE = "ST1ALICE"
BOB = "ST2BOB"
ADMIN = "ST1ADMIN"
ESCROW = "referenda.escrow"

CONFIG = GovernanceConfig(admin=ADMIN, escrow_account=ESCROW)


def make_registry(height=100, yes=None, no=None):
    """Registry at *height*; a fixed tally is served when yes/no are given."""
    clock = BlockClock(height)
    tally_fn = None
    if yes is not None or no is not None:
        tally_fn = lambda rid: VoteTally(referendum_id=rid, yes=yes or 0, no=no or 0)
    return ReferendumRegistry(clock, CONFIG, tally_fn=tally_fn), clock


def create(
    registry,
    caller=ALICE,
    title="Climate Action 2025",
    description="Should we adopt carbon tax?",
    start=110,
    end=200,
    quorum=5000,
    pool=1_000_000,
    quiz_required=False,
    quiz_id=None,
):
    return registry.create(
        caller, title, description, start, end, quorum, pool, quiz_required, quiz_id
    )


def make_active(height=100, start=110, end=200, quorum=1000, yes=None, no=None):
    registry, clock = make_registry(height, yes=yes, no=no)
    rid = create(registry, start=start, end=end, quorum=quorum)
    registry.activate(rid, ALICE)
    return registry, clock, rid


# ══════════════════════════════════════════════════════════════════════
#  CREATE
# ══════════════════════════════════════════════════════════════════════


class TestReferendumCreation:
    """create() validation and bookkeeping."""

    def test_create_quiz_referendum(self):
        registry, _ = make_registry(100)
        rid = create(
            registry, title="T", start=110, end=200, quorum=5000,
            pool=1_000_000, quiz_required=True, quiz_id=5,
        )
        assert rid == 0
        ref = registry.get(0)
        assert ref.status == ReferendumStatus.PENDING
        assert ref.quiz_required is True
        assert ref.quiz_id == 5
        assert ref.creator == ALICE
        assert ref.created_at == 100

    def test_accumulators_start_at_zero(self):
        registry, _ = make_registry()
        ref = registry.get(create(registry))
        assert (ref.yes_votes, ref.no_votes, ref.total_staked) == (0, 0, 0)
        assert ref.final_result is None
        assert not ref.is_finalized

    def test_sequential_ids(self):
        registry, _ = make_registry()
        ids = [create(registry, title=f"Ref {i}") for i in range(3)]
        assert ids == [0, 1, 2]
        assert registry.count == 3

    def test_duplicate_title(self):
        registry, _ = make_registry()
        create(registry, title="Tax Vote", quorum=1000, pool=500_000)
        with pytest.raises(DuplicateTitleError) as exc:
            create(registry, title="Tax Vote", start=120, end=210, quorum=1000, pool=500_000)
        assert exc.value.code == ErrorCode.DUPLICATE_TITLE

    def test_duplicate_title_checked_before_other_fields(self):
        registry, _ = make_registry()
        create(registry, title="Tax Vote")
        with pytest.raises(DuplicateTitleError):
            create(registry, title="Tax Vote", start=110, end=111, quorum=99999, pool=0)

    def test_empty_title(self):
        registry, _ = make_registry()
        with pytest.raises(InvalidTitleError):
            create(registry, title="")

    def test_window_too_short(self):
        registry, _ = make_registry()
        with pytest.raises(InvalidWindowError):
            create(registry, title="Bad", start=110, end=115)

    def test_minimum_window_accepted(self):
        registry, _ = make_registry()
        rid = create(registry, start=110, end=120)
        assert registry.get(rid).end_block == 120

    def test_window_in_past(self):
        registry, _ = make_registry(100)
        with pytest.raises(WindowInPastError):
            create(registry, start=99, end=200)

    def test_window_starting_now(self):
        registry, _ = make_registry(100)
        assert create(registry, start=100, end=150) == 0

    def test_quorum_too_high(self):
        registry, _ = make_registry()
        with pytest.raises(QuorumTooHighError):
            create(registry, quorum=10_001)

    def test_max_quorum_accepted(self):
        registry, _ = make_registry()
        assert registry.get(create(registry, quorum=10_000)).quorum == 10_000

    def test_empty_reward_pool(self):
        registry, _ = make_registry()
        with pytest.raises(EmptyRewardPoolError):
            create(registry, pool=0)

    def test_quiz_without_id(self):
        registry, _ = make_registry()
        with pytest.raises(MissingQuizIdError) as exc:
            create(registry, title="Quiz Needed", quiz_required=True, quiz_id=None)
        assert exc.value.code == ErrorCode.MISSING_QUIZ_ID

    def test_validation_errors_share_category(self):
        registry, _ = make_registry()
        with pytest.raises(ValidationError):
            create(registry, pool=0)

    def test_failed_create_consumes_nothing(self):
        registry, _ = make_registry()
        with pytest.raises(GovernanceError):
            create(registry, title="Retry", pool=0)
        assert registry.count == 0
        assert registry.get_by_title("Retry") is None
        assert create(registry, title="Retry") == 0

    def test_get_by_title(self):
        registry, _ = make_registry()
        rid = create(registry, title="Indexed")
        assert registry.get_by_title("Indexed").id == rid
        assert registry.get_by_title("Missing") is None

    def test_error_message_carries_code(self):
        registry, _ = make_registry()
        create(registry, title="Tax Vote")
        with pytest.raises(DuplicateTitleError, match=r"\[E102\]"):
            create(registry, title="Tax Vote")


# ══════════════════════════════════════════════════════════════════════
#  ACTIVATE
# ══════════════════════════════════════════════════════════════════════


class TestReferendumActivation:
    """activate(): PENDING → ACTIVE before the start block."""

    def test_creator_activates(self):
        registry, _ = make_registry(100)
        rid = create(registry)
        registry.activate(rid, ALICE)
        assert registry.get(rid).status == ReferendumStatus.ACTIVE

    def test_activate_at_start_block(self):
        registry, clock = make_registry(100)
        rid = create(registry, start=110)
        clock.set_height(110)
        registry.activate(rid, ALICE)
        assert registry.get(rid).is_votable

    def test_activate_after_start_is_too_late(self):
        registry, clock = make_registry(100)
        rid = create(registry, start=100, end=150)
        clock.set_height(105)
        with pytest.raises(TooLateError):
            registry.activate(rid, ALICE)
        assert registry.get(rid).status == ReferendumStatus.PENDING

    def test_non_creator_rejected(self):
        registry, _ = make_registry()
        rid = create(registry)
        with pytest.raises(UnauthorizedError):
            registry.activate(rid, BOB)

    def test_admin_cannot_activate(self):
        registry, _ = make_registry()
        rid = create(registry)
        with pytest.raises(UnauthorizedError):
            registry.activate(rid, ADMIN)

    def test_activate_twice(self):
        registry, _ = make_registry()
        rid = create(registry)
        registry.activate(rid, ALICE)
        with pytest.raises(InvalidStateError):
            registry.activate(rid, ALICE)

    def test_activate_missing(self):
        registry, _ = make_registry()
        with pytest.raises(NotFoundError):
            registry.activate(42, ALICE)


# ══════════════════════════════════════════════════════════════════════
#  CLOSE
# ══════════════════════════════════════════════════════════════════════


class TestReferendumClosure:
    """close(): ACTIVE → CLOSED with quorum-gated result."""

    def test_close_without_quorum_has_no_result(self):
        registry, clock, rid = make_active(quorum=1000, yes=300, no=200)
        clock.set_height(200)
        assert registry.close(rid, ALICE) is None
        ref = registry.get(rid)
        assert ref.status == ReferendumStatus.CLOSED
        assert ref.final_result is None
        assert (ref.yes_votes, ref.no_votes) == (300, 200)

    def test_second_close_already_closed(self):
        registry, clock, rid = make_active(quorum=1000, yes=300, no=200)
        clock.set_height(200)
        registry.close(rid, ALICE)
        with pytest.raises(AlreadyClosedError) as exc:
            registry.close(rid, ALICE)
        assert isinstance(exc.value, InvalidStateError)
        assert exc.value.code == ErrorCode.ALREADY_CLOSED

    def test_yes_wins(self):
        registry, clock, rid = make_active(quorum=5000, yes=6000, no=4000)
        clock.set_height(200)
        assert registry.close(rid, ALICE) == Choice.YES
        assert registry.get(rid).final_result == Choice.YES

    def test_no_wins(self):
        registry, clock, rid = make_active(quorum=5000, yes=1000, no=4000)
        clock.set_height(200)
        assert registry.close(rid, ALICE) == Choice.NO

    def test_tie_with_quorum_has_no_result(self):
        registry, clock, rid = make_active(quorum=1000, yes=5000, no=5000)
        clock.set_height(200)
        assert registry.close(rid, ALICE) is None
        assert registry.get(rid).is_closed

    def test_quorum_met_exactly(self):
        registry, clock, rid = make_active(quorum=1000, yes=600, no=400)
        clock.set_height(200)
        assert registry.close(rid, ALICE) == Choice.YES

    def test_lopsided_split_without_quorum(self):
        registry, clock, rid = make_active(quorum=10_000, yes=9000, no=0)
        clock.set_height(200)
        assert registry.close(rid, ALICE) is None

    def test_without_tally_source_uses_record(self):
        registry, clock, rid = make_active(quorum=0)
        clock.set_height(200)
        assert registry.close(rid, ALICE) is None
        assert registry.get(rid).is_finalized

    def test_admin_can_close(self):
        registry, clock, rid = make_active(yes=2000, no=0)
        clock.set_height(250)
        assert registry.close(rid, ADMIN) == Choice.YES
        assert registry.get(rid).closed_at == 250

    def test_stranger_cannot_close(self):
        registry, clock, rid = make_active()
        clock.set_height(200)
        with pytest.raises(UnauthorizedError):
            registry.close(rid, BOB)

    def test_close_before_end(self):
        registry, clock, rid = make_active(end=200)
        clock.set_height(199)
        with pytest.raises(TooEarlyError):
            registry.close(rid, ALICE)
        assert registry.get(rid).status == ReferendumStatus.ACTIVE

    def test_close_pending_is_invalid_state(self):
        registry, clock = make_registry()
        rid = create(registry)
        clock.set_height(300)
        with pytest.raises(InvalidStateError) as exc:
            registry.close(rid, ALICE)
        assert not isinstance(exc.value, AlreadyClosedError)

    def test_close_missing(self):
        registry, _ = make_registry()
        with pytest.raises(NotFoundError):
            registry.close(7, ADMIN)


# ══════════════════════════════════════════════════════════════════════
#  LIFECYCLE
# ══════════════════════════════════════════════════════════════════════


class TestReferendumLifecycle:
    """Forward-only state machine."""

    def test_history_records_each_transition(self):
        registry, clock, rid = make_active(yes=0, no=0)
        clock.set_height(200)
        registry.close(rid, ALICE)
        history = registry.get(rid).history
        assert [(h["from"], h["to"]) for h in history] == [
            ("PENDING", "ACTIVE"),
            ("ACTIVE", "CLOSED"),
        ]
        assert history[0]["block"] == 100
        assert history[1]["block"] == 200

    def test_closed_is_absorbing(self):
        registry, clock, rid = make_active(yes=0, no=0)
        clock.set_height(200)
        registry.close(rid, ALICE)
        with pytest.raises(InvalidStateError):
            registry.activate(rid, ALICE)
        assert registry.get(rid).status == ReferendumStatus.CLOSED

    def test_transition_cannot_skip(self):
        registry, _ = make_registry()
        ref = registry.get(create(registry))
        with pytest.raises(InvalidStateError):
            ref.transition_to(ReferendumStatus.CLOSED, 100)

    def test_final_result_never_rederived(self):
        state = {"yes": 8000, "no": 0}
        clock = BlockClock(100)
        registry = ReferendumRegistry(
            clock, CONFIG,
            tally_fn=lambda rid: VoteTally(referendum_id=rid, **state),
        )
        rid = create(registry, quorum=1000)
        registry.activate(rid, ALICE)
        clock.set_height(200)
        registry.close(rid, ALICE)
        state["no"] = 100_000
        with pytest.raises(AlreadyClosedError):
            registry.close(rid, ALICE)
        assert registry.get(rid).final_result == Choice.YES
        assert registry.get(rid).no_votes == 0

    def test_list_ids_by_status(self):
        registry, _ = make_registry()
        a = create(registry, title="A")
        b = create(registry, title="B")
        registry.activate(b, ALICE)
        assert registry.list_ids() == [a, b]
        assert registry.list_ids(ReferendumStatus.ACTIVE) == [b]
        assert registry.list_ids(ReferendumStatus.PENDING) == [a]

    def test_to_dict(self):
        registry, _ = make_registry()
        rid = create(registry, quiz_required=True, quiz_id=3)
        d = registry.get(rid).to_dict()
        assert d["status"] == "PENDING"
        assert d["quizId"] == 3
        assert d["finalResult"] is None
        assert registry.to_dict()["nextId"] == 1

    def test_get_missing_returns_none(self):
        registry, _ = make_registry()
        assert registry.get(99) is None
        assert not registry.exists(99)
