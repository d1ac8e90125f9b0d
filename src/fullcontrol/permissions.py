"""Per-domain permission policy."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from fullcontrol.directives.models import Domain


@dataclass(frozen=True)
class PermissionSet:
    terminal: bool = True
    file_operations: bool = True
    build: bool = True
    deploy: bool = True
    git: bool = True

    def allows(self, domain: Domain) -> bool:
        if domain == Domain.FILE:
            return self.file_operations
        return bool(getattr(self, domain.value))

    @classmethod
    def none(cls) -> PermissionSet:
        return cls(terminal=False, file_operations=False, build=False, deploy=False, git=False)


def disabled_message(domain: Domain) -> str:
    return f"{domain.label} operations are disabled"


class PermissionGate:
    """Answers authorization checks from the live permission source.

    The source is read on every call so a config update takes effect for the
    next directive without rebuilding the gate.
    """

    def __init__(self, source: Callable[[], PermissionSet]) -> None:
        self._source = source

    @classmethod
    def fixed(cls, permissions: PermissionSet) -> PermissionGate:
        return cls(lambda: permissions)

    @property
    def permissions(self) -> PermissionSet:
        return self._source()

    def is_allowed(self, domain: Domain) -> bool:
        return self._source().allows(domain)
