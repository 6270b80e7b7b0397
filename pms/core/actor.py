"""Resolved caller identity passed explicitly into every workflow call."""

from dataclasses import dataclass

from pms.models import REVIEWER_ROLES, ROLES


@dataclass(frozen=True)
class ActorContext:
    npk: str
    role: str

    def __post_init__(self):
        if self.role not in ROLES:
            raise ValueError(f"Unknown role: {self.role}")

    @property
    def is_reviewer(self) -> bool:
        return self.role in REVIEWER_ROLES

    @property
    def is_admin(self) -> bool:
        return self.role == "ADMIN"

    def owns(self, ipp) -> bool:
        return ipp.owner_npk == self.npk
