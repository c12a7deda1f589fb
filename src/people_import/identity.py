from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


class IdentityProvider(Protocol):
    """Supplies the actor that owns records created by an import."""

    def current_actor_id(self) -> str | None:
        """The actor id, or `None` when nobody is known (ownership is then left unset)."""
        ...


@dataclass(frozen=True)
class StaticIdentity:
    """An identity fixed for the whole run, e.g. from config or a CLI flag."""
    actor_id: str | None = None

    def current_actor_id(self) -> str | None:
        return self.actor_id or None
