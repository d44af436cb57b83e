"""Tests for pa_common.enums: values must match DB CHECK constraints."""

from src.pa_common.enums import (
    MarketStatus,
    MarketType,
    MemberRole,
    NotificationType,
    ResetFrequency,
    TransactionType,
    WinnerRule,
)


class TestAllEnumsAreStr:
    def test_market_type_is_str(self) -> None:
        assert isinstance(MarketType.BINARY, str)
        assert MarketType.NUMERIC_RANGE == "NUMERIC_RANGE"

    def test_market_status_is_str(self) -> None:
        assert MarketStatus.PENDING_RESOLUTION == "PENDING_RESOLUTION"

    def test_member_role_is_str(self) -> None:
        assert MemberRole.SYSTEM == "SYSTEM"


class TestEnumMembers:
    def test_transaction_types(self) -> None:
        assert {t.value for t in TransactionType} == {
            "BET_PLACED",
            "WIN_PAYOUT",
            "USER_TRANSFER",
            "MONTHLY_RESET",
            "TRADING_FEE",
            "SETTLEMENT_DUST",
            "BET_REFUND",
            "MEMBERSHIP_GRANT",
        }

    def test_market_statuses(self) -> None:
        assert len(MarketStatus) == 4

    def test_reset_frequencies(self) -> None:
        assert {f.value for f in ResetFrequency} == {"WEEKLY", "MONTHLY", "CUSTOM", "MANUAL"}

    def test_winner_rules(self) -> None:
        assert [r.value for r in WinnerRule] == ["HIGHEST_BALANCE"]

    def test_notification_types(self) -> None:
        assert {n.value for n in NotificationType} == {
            "WIN_PAYOUT",
            "BET_RESOLVED",
            "MARKET_RESOLVED",
            "MONTHLY_WINNER",
        }
