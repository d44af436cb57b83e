"""Authenticated caller, as supplied by the auth collaborator."""

from dataclasses import dataclass

from src.pa_common.enums import UserRole


@dataclass(frozen=True)
class CurrentUser:
    user_id: str
    role: str = UserRole.USER.value

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value
