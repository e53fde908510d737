from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from app.core.errors import InvalidInput, InvalidTransition


@dataclass(frozen=True, slots=True)
class StatusMachine:
    """Explicit status graph. A status with no outgoing edge is terminal."""

    name: str
    initial: str
    edges: Mapping[str, frozenset[str]]
    statuses: frozenset[str] = field(init=False)

    def __post_init__(self) -> None:
        known = set(self.edges)
        for targets in self.edges.values():
            known.update(targets)
        known.add(self.initial)
        object.__setattr__(self, "statuses", frozenset(known))

    @classmethod
    def build(cls, name: str, initial: str, edges: Mapping[str, Iterable[str]]) -> StatusMachine:
        return cls(
            name=name,
            initial=str(initial),
            edges={str(source): frozenset(str(target) for target in targets) for source, targets in edges.items()},
        )

    @property
    def terminal_statuses(self) -> frozenset[str]:
        return frozenset(status for status in self.statuses if not self.edges.get(status))

    def is_terminal(self, status: str) -> bool:
        return status in self.terminal_statuses

    def allowed_targets(self, status: str) -> frozenset[str]:
        return self.edges.get(status, frozenset())

    def can_transition(self, current: str, target: str) -> bool:
        return target in self.allowed_targets(current)

    def ensure_known(self, status: str) -> None:
        if status not in self.statuses:
            raise InvalidInput(f"unknown {self.name} status '{status}'")

    def ensure_transition(self, current: str, target: str) -> None:
        if not self.can_transition(current, target):
            raise InvalidTransition(self.name, current, target)
