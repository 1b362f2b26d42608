"""Configuration for the HTTP layer."""

from __future__ import annotations

import dataclasses as dc

from dossier.common.env import env_list


@dc.dataclass(frozen=True, slots=True)
class ApiConfig:
    """Access settings for the API.

    Attributes
    ----------
    admin_users
        Caller ids allowed to use the operator endpoints. Empty means
        nobody may.

    """

    admin_users: frozenset[str] = frozenset()

    def is_admin(self, user_id: str) -> bool:
        """Return whether ``user_id`` is on the operator allow-list."""
        return user_id in self.admin_users

    @classmethod
    def from_env(cls) -> ApiConfig:
        """Create configuration from ``DOSSIER_ADMIN_USERS`` (comma separated)."""
        return cls(admin_users=frozenset(env_list("DOSSIER_ADMIN_USERS")))
