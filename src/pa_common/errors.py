"""Unified error codes and custom exceptions.

Every error belongs to one kind family (the `kind` attribute) so callers can
branch on the family without parsing messages:

  ValidationError     400   bad input shape, nothing was touched
  AuthorizationError  401/403
  NotFoundError       404
  StateConflictError  409   market not open, funds, limits
  InternalError       500   store/transport failure

Error code ranges:
  1xxx: Auth
  2xxx: Account / Arena
  3xxx: Market
  4xxx: Bet
  5xxx: Transfer
  9xxx: System
"""


class AppError(Exception):
    """Base application error."""

    kind: str = "Internal"

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


class ValidationError(AppError):
    kind = "ValidationError"


class AuthorizationError(AppError):
    kind = "AuthorizationError"


class NotFoundError(AppError):
    kind = "NotFound"


class StateConflictError(AppError):
    kind = "StateConflict"


# --- 1xxx: Auth ---

class UnauthorizedError(AuthorizationError):
    def __init__(self) -> None:
        super().__init__(1001, "Authentication required", 401)


class ForbiddenError(AuthorizationError):
    def __init__(self, detail: str) -> None:
        super().__init__(1002, detail, 403)


# --- 2xxx: Account / Arena ---

class InsufficientFundsError(StateConflictError):
    def __init__(self, required: int, available: int) -> None:
        super().__init__(
            2001,
            f"Insufficient points: required {required}, available {available}",
            409,
        )


class AccountNotFoundError(NotFoundError):
    def __init__(self, user_id: str, scope_id: str) -> None:
        super().__init__(2002, f"No account for user {user_id} in {scope_id}", 404)


class NotAMemberError(AuthorizationError):
    def __init__(self, arena_id: str) -> None:
        super().__init__(2003, f"You are not a member of arena {arena_id}", 403)


class ArenaNotFoundError(NotFoundError):
    def __init__(self, arena_id: str) -> None:
        super().__init__(2004, f"Arena not found: {arena_id}", 404)


# --- 3xxx: Market ---

class MarketNotFoundError(NotFoundError):
    def __init__(self, market_id: str) -> None:
        super().__init__(3001, f"Market not found: {market_id}", 404)


class MarketClosedError(StateConflictError):
    def __init__(self, market_id: str, status: str) -> None:
        super().__init__(3002, f"Market {market_id} is {status}", 409)


class MarketExpiredError(StateConflictError):
    def __init__(self, market_id: str) -> None:
        super().__init__(3003, f"Market {market_id} is past its resolution date", 409)


class InvalidOptionError(ValidationError):
    def __init__(self, detail: str) -> None:
        super().__init__(3004, detail, 400)


class InvalidResolutionDataError(ValidationError):
    def __init__(self, detail: str) -> None:
        super().__init__(3005, detail, 400)


class InvalidMarketError(ValidationError):
    def __init__(self, detail: str) -> None:
        super().__init__(3006, detail, 400)


# --- 4xxx: Bet ---

class InvalidInputError(ValidationError):
    def __init__(self, detail: str) -> None:
        super().__init__(4001, detail, 400)


class BetLimitViolationError(StateConflictError):
    def __init__(self, detail: str) -> None:
        super().__init__(4002, detail, 409)


# --- 5xxx: Transfer ---

class TransfersDisabledError(StateConflictError):
    def __init__(self, arena_id: str) -> None:
        super().__init__(5001, f"Point transfers are disabled in arena {arena_id}", 409)


class LimitExceededError(StateConflictError):
    def __init__(self, amount: int, limit: int) -> None:
        super().__init__(
            5002, f"Transfer of {amount} exceeds the limit of {limit} points", 409
        )


class SelfTransferError(ValidationError):
    def __init__(self) -> None:
        super().__init__(5003, "You cannot transfer points to yourself", 400)


class ReceiverNotFoundError(NotFoundError):
    def __init__(self, email: str) -> None:
        super().__init__(5004, f"No user with email {email}", 404)


class ReceiverNotMemberError(StateConflictError):
    def __init__(self, arena_id: str) -> None:
        super().__init__(5005, f"Receiver is not a member of arena {arena_id}", 409)


# --- 9xxx: System ---

class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)
