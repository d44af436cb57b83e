"""Global enums: must match DB CHECK constraints exactly."""

from enum import Enum


class MarketType(str, Enum):
    BINARY = "BINARY"
    MULTIPLE_CHOICE = "MULTIPLE_CHOICE"
    NUMERIC_RANGE = "NUMERIC_RANGE"


class MarketStatus(str, Enum):
    OPEN = "OPEN"
    PENDING_RESOLUTION = "PENDING_RESOLUTION"
    RESOLVED = "RESOLVED"
    CANCELLED = "CANCELLED"


class TransactionType(str, Enum):
    BET_PLACED = "BET_PLACED"
    WIN_PAYOUT = "WIN_PAYOUT"
    USER_TRANSFER = "USER_TRANSFER"
    MONTHLY_RESET = "MONTHLY_RESET"
    # Creator fee, paid out of the bettor's stake
    TRADING_FEE = "TRADING_FEE"
    # Settlement rounding residue / unclaimed pool
    SETTLEMENT_DUST = "SETTLEMENT_DUST"
    BET_REFUND = "BET_REFUND"
    MEMBERSHIP_GRANT = "MEMBERSHIP_GRANT"


class ResetFrequency(str, Enum):
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    CUSTOM = "CUSTOM"
    MANUAL = "MANUAL"


class WinnerRule(str, Enum):
    HIGHEST_BALANCE = "HIGHEST_BALANCE"


class UserRole(str, Enum):
    USER = "USER"
    ADMIN = "ADMIN"


class MemberRole(str, Enum):
    MEMBER = "MEMBER"
    ADMIN = "ADMIN"
    # House accounts (dust sink); excluded from resets and winner picks
    SYSTEM = "SYSTEM"


class NotificationType(str, Enum):
    WIN_PAYOUT = "WIN_PAYOUT"
    BET_RESOLVED = "BET_RESOLVED"
    MARKET_RESOLVED = "MARKET_RESOLVED"
    MONTHLY_WINNER = "MONTHLY_WINNER"
