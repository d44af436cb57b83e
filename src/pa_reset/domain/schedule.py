"""Cycle reset rules: pure functions over arena policy and balances."""

from dataclasses import dataclass
from datetime import datetime, timedelta

from src.pa_account.domain.models import Account
from src.pa_arena.domain.models import ArenaSettings
from src.pa_common.datetime_utils import as_utc, first_of_next_month
from src.pa_common.enums import ResetFrequency, WinnerRule
from src.pa_common.errors import InternalError


@dataclass(frozen=True)
class BalanceAdjustment:
    user_id: str
    before: int
    after: int

    @property
    def delta(self) -> int:
        return self.after - self.before


def is_due(policy: ArenaSettings, now: datetime) -> bool:
    return policy.next_reset_at is not None and as_utc(policy.next_reset_at) <= as_utc(now)


def next_reset_at(policy: ArenaSettings, now: datetime) -> datetime | None:
    """MONTHLY: 1st of next month 00:00 UTC; WEEKLY: +7 days; CUSTOM: +custom_reset_days;
    MANUAL: None (only an explicit reset runs it)."""
    now = as_utc(now)
    if policy.reset_frequency == ResetFrequency.MONTHLY:
        return first_of_next_month(now)
    if policy.reset_frequency == ResetFrequency.WEEKLY:
        return now + timedelta(days=7)
    if policy.reset_frequency == ResetFrequency.CUSTOM:
        return now + timedelta(days=policy.custom_reset_days or 0)
    return None


def pick_winner(policy: ArenaSettings, accounts: list[Account]) -> Account | None:
    """Highest balance wins; ties go to the earliest member, then the lowest user_id."""
    if policy.winner_rule != WinnerRule.HIGHEST_BALANCE:
        raise InternalError(f"Unsupported winner rule: {policy.winner_rule}")
    if not accounts:
        return None
    return min(
        accounts,
        key=lambda a: (
            -a.points,
            as_utc(a.created_at) if a.created_at else as_utc(datetime.max),
            a.user_id,
        ),
    )


def plan_adjustments(policy: ArenaSettings, accounts: list[Account]) -> list[BalanceAdjustment]:
    """Carryover adds the allocation; otherwise every balance is set to it."""
    allocation = policy.monthly_allocation
    return [
        BalanceAdjustment(
            user_id=a.user_id,
            before=a.points,
            after=a.points + allocation if policy.allow_carryover else allocation,
        )
        for a in sorted(accounts, key=lambda a: a.user_id)
    ]
