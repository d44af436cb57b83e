"""Unit tests for cycle reset rules and CycleResetJob."""

from datetime import UTC, datetime, timedelta

import pytest

from src.pa_account.domain.models import Account
from src.pa_arena.domain.models import ArenaSettings
from src.pa_common.enums import NotificationType, ResetFrequency, TransactionType
from src.pa_common.errors import ArenaNotFoundError, ForbiddenError, InternalError
from src.pa_common.principal import CurrentUser
from src.pa_reset.application.service import CycleResetJob
from src.pa_reset.domain.schedule import is_due, next_reset_at, pick_winner, plan_adjustments
from tests.unit.fakes import (
    FakeArenaRepository,
    FakeLedgerRepository,
    FakeStore,
    RecordingPublisher,
)

NOW = datetime(2026, 3, 15, 10, 30, tzinfo=UTC)
PAST = NOW - timedelta(hours=1)


def _account(user_id: str, points: int, created_at: datetime | None = None) -> Account:
    return Account(
        id=f"acc-{user_id}",
        user_id=user_id,
        scope_id="arena-1",
        role="MEMBER",
        points=points,
        version=0,
        created_at=created_at or datetime(2026, 1, 1, tzinfo=UTC),
    )


class TestSchedule:
    def test_monthly_goes_to_first_of_next_month(self) -> None:
        policy = ArenaSettings(arena_id="a", reset_frequency=ResetFrequency.MONTHLY)
        assert next_reset_at(policy, NOW) == datetime(2026, 4, 1, tzinfo=UTC)

    def test_monthly_wraps_year(self) -> None:
        policy = ArenaSettings(arena_id="a")
        assert next_reset_at(policy, datetime(2026, 12, 31, 23, tzinfo=UTC)) == datetime(
            2027, 1, 1, tzinfo=UTC
        )

    def test_weekly(self) -> None:
        policy = ArenaSettings(arena_id="a", reset_frequency=ResetFrequency.WEEKLY)
        assert next_reset_at(policy, NOW) == NOW + timedelta(days=7)

    def test_custom(self) -> None:
        policy = ArenaSettings(
            arena_id="a", reset_frequency=ResetFrequency.CUSTOM, custom_reset_days=10
        )
        assert next_reset_at(policy, NOW) == NOW + timedelta(days=10)

    def test_custom_requires_interval(self) -> None:
        with pytest.raises(ValueError):
            ArenaSettings(arena_id="a", reset_frequency=ResetFrequency.CUSTOM)

    def test_manual_has_no_next_reset(self) -> None:
        policy = ArenaSettings(arena_id="a", reset_frequency=ResetFrequency.MANUAL)
        assert next_reset_at(policy, NOW) is None

    def test_is_due(self) -> None:
        assert is_due(ArenaSettings(arena_id="a", next_reset_at=NOW), NOW)
        assert not is_due(ArenaSettings(arena_id="a", next_reset_at=NOW + timedelta(1)), NOW)
        assert not is_due(ArenaSettings(arena_id="a"), NOW)


class TestPickWinner:
    def test_highest_balance(self) -> None:
        policy = ArenaSettings(arena_id="a")
        winner = pick_winner(policy, [_account("a", 10), _account("b", 30), _account("c", 20)])
        assert winner is not None and winner.user_id == "b"

    def test_tie_goes_to_earliest_member(self) -> None:
        policy = ArenaSettings(arena_id="a")
        early = datetime(2025, 6, 1, tzinfo=UTC)
        winner = pick_winner(policy, [_account("z", 50, early), _account("b", 50)])
        assert winner is not None and winner.user_id == "z"

    def test_full_tie_goes_to_lowest_user_id(self) -> None:
        policy = ArenaSettings(arena_id="a")
        winner = pick_winner(policy, [_account("m", 50), _account("k", 50)])
        assert winner is not None and winner.user_id == "k"

    def test_empty_arena(self) -> None:
        assert pick_winner(ArenaSettings(arena_id="a"), []) is None

    def test_unsupported_rule(self) -> None:
        policy = ArenaSettings(arena_id="a").model_copy(update={"winner_rule": "MOST_BETS"})
        with pytest.raises(InternalError):
            pick_winner(policy, [_account("a", 1)])


class TestPlanAdjustments:
    def test_set_to_allocation(self) -> None:
        policy = ArenaSettings(arena_id="a", monthly_allocation=1000)
        plan = plan_adjustments(policy, [_account("b", 1500), _account("a", 200)])
        assert [(p.user_id, p.after, p.delta) for p in plan] == [
            ("a", 1000, 800),
            ("b", 1000, -500),
        ]

    def test_carryover_adds_allocation(self) -> None:
        policy = ArenaSettings(arena_id="a", monthly_allocation=1000, allow_carryover=True)
        [adj] = plan_adjustments(policy, [_account("a", 250)])
        assert (adj.after, adj.delta) == (1250, 1000)


def _store(arena_id: str = "arena-1", **policy: object) -> FakeStore:
    store = FakeStore()
    _seed(store, arena_id, **policy)
    return store


def _seed(store: FakeStore, arena_id: str, **policy: object) -> None:
    fields: dict[str, object] = {"monthly_allocation": 1000, "next_reset_at": PAST}
    fields.update(policy)
    store.add_arena(arena_id, **fields)
    store.add_account("alice", arena_id, points=1500)
    store.add_account("bob", arena_id, points=1500)
    store.add_account("carol", arena_id, points=200)
    store.add_account("SYSTEM_DUST", arena_id, points=7, role="SYSTEM")


def _job(store: FakeStore, arenas: FakeArenaRepository | None = None) -> CycleResetJob:
    return CycleResetJob(
        session_factory=store.session,
        ledger=FakeLedgerRepository(),
        arenas=arenas or FakeArenaRepository(),
        publisher=RecordingPublisher(),
    )


class TestResetArena:
    async def test_resets_balances_and_records_winner(self) -> None:
        store = _store()
        job = _job(store)

        result = await job.reset_arena(store.session(), "arena-1", now=NOW)

        assert result.status == "success"
        assert result.winner_user_id == "alice"
        assert result.winner_points == 1500
        assert result.member_count == 3
        assert result.next_reset_at == datetime(2026, 4, 1, tzinfo=UTC).isoformat()
        assert [store.points(u) for u in ("alice", "bob", "carol")] == [1000, 1000, 1000]
        assert store.points("SYSTEM_DUST") == 7
        [cycle] = store.state.cycles
        assert (cycle.winner_user_id, cycle.winner_points, cycle.member_count) == ("alice", 1500, 3)
        assert store.state.settings["arena-1"].next_reset_at == datetime(2026, 4, 1, tzinfo=UTC)

    async def test_postings_carry_direction(self) -> None:
        store = _store()

        await _job(store).reset_arena(store.session(), "arena-1", now=NOW)

        resets = {
            (t.from_user_id, t.to_user_id): t.amount
            for t in store.state.transactions
            if t.type == TransactionType.MONTHLY_RESET.value
        }
        assert resets == {("alice", None): 500, ("bob", None): 500, (None, "carol"): 800}

    async def test_unchanged_balance_writes_nothing(self) -> None:
        store = _store()
        store.state.accounts[("carol", "arena-1")].points = 1000

        await _job(store).reset_arena(store.session(), "arena-1", now=NOW)

        assert not any(
            "carol" in (t.from_user_id, t.to_user_id) for t in store.state.transactions
        )

    async def test_carryover(self) -> None:
        store = _store(allow_carryover=True)

        await _job(store).reset_arena(store.session(), "arena-1", now=NOW)

        assert [store.points(u) for u in ("alice", "bob", "carol")] == [2500, 2500, 1200]

    async def test_winner_notified(self) -> None:
        store = _store()
        job = _job(store)

        await job.reset_arena(store.session(), "arena-1", now=NOW)

        [event] = job._publisher.events  # type: ignore[attr-defined]
        assert event.type == NotificationType.MONTHLY_WINNER
        assert event.user_id == "alice"
        assert event.payload == {"points": 1500}

    async def test_not_due_is_skipped(self) -> None:
        store = _store(next_reset_at=NOW + timedelta(days=3))

        result = await _job(store).reset_arena(store.session(), "arena-1", now=NOW)

        assert result.status == "skipped"
        assert store.points("alice") == 1500
        assert store.state.cycles == []

    async def test_force_ignores_schedule(self) -> None:
        store = _store(next_reset_at=None, reset_frequency=ResetFrequency.MANUAL)

        result = await _job(store).reset_arena(store.session(), "arena-1", now=NOW, force=True)

        assert result.status == "success"
        assert result.next_reset_at is None
        assert store.state.settings["arena-1"].next_reset_at is None

    async def test_weekly_schedule(self) -> None:
        store = _store(reset_frequency=ResetFrequency.WEEKLY)

        result = await _job(store).reset_arena(store.session(), "arena-1", now=NOW)

        assert result.next_reset_at == (NOW + timedelta(days=7)).isoformat()

    async def test_locks_settings_before_accounts(self) -> None:
        store = _store()
        db = store.session()

        await _job(store).reset_arena(db, "arena-1", now=NOW)

        assert db.locks == [("settings", "arena-1"), ("scope", "arena-1")]

    async def test_plain_member_cannot_force(self) -> None:
        store = _store()
        with pytest.raises(ForbiddenError):
            await _job(store).reset_arena(
                store.session(), "arena-1", force=True, caller=CurrentUser(user_id="carol")
            )
        assert store.points("alice") == 1500

    async def test_arena_admin_can_force(self) -> None:
        store = _store()
        store.state.accounts[("carol", "arena-1")].role = "ADMIN"

        result = await _job(store).reset_arena(
            store.session(), "arena-1", now=NOW, force=True, caller=CurrentUser(user_id="carol")
        )
        assert result.status == "success"

    async def test_unknown_arena(self) -> None:
        store = _store()
        with pytest.raises(ArenaNotFoundError):
            await _job(store).reset_arena(store.session(), "nowhere", now=NOW)


class TestRunDue:
    async def test_failure_isolated_per_arena(self) -> None:
        store = _store("arena-1")
        _seed(store, "arena-2")
        arenas = FakeArenaRepository()
        arenas.fail_cycle_for = {"arena-2"}

        results = await _job(store, arenas).run_due(now=NOW)

        by_arena = {r.arena_id: r for r in results}
        assert by_arena["arena-1"].status == "success"
        assert by_arena["arena-2"].status == "failed"
        assert "arena-2" in (by_arena["arena-2"].error or "")
        assert store.points("alice", "arena-1") == 1000
        assert store.points("alice", "arena-2") == 1500
        assert store.state.settings["arena-2"].next_reset_at == PAST

    async def test_rerun_does_not_reset_twice(self) -> None:
        store = _store()
        job = _job(store)

        first = await job.run_due(now=NOW)
        tx_count = len(store.state.transactions)
        second = await job.run_due(now=NOW)

        assert [r.status for r in first] == ["success"]
        assert second == []
        assert len(store.state.transactions) == tx_count

    async def test_nothing_due(self) -> None:
        store = _store(next_reset_at=None)
        assert await _job(store).run_due(now=NOW) == []
