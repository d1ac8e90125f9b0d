from __future__ import annotations

import pytest

from fullcontrol.config import ConfigStore
from fullcontrol.directives.models import Domain
from fullcontrol.permissions import PermissionGate, PermissionSet, disabled_message


@pytest.mark.parametrize(
    ("domain", "message"),
    [
        (Domain.TERMINAL, "Terminal operations are disabled"),
        (Domain.FILE, "File operations are disabled"),
        (Domain.BUILD, "Build operations are disabled"),
        (Domain.DEPLOY, "Deployment operations are disabled"),
        (Domain.GIT, "Git operations are disabled"),
    ],
)
def test_disabled_message_per_domain(domain: Domain, message: str) -> None:
    assert disabled_message(domain) == message


def test_file_domain_maps_to_file_operations_flag() -> None:
    permissions = PermissionSet(file_operations=False)

    assert permissions.allows(Domain.FILE) is False
    assert all(permissions.allows(domain) for domain in Domain if domain != Domain.FILE)


def test_none_denies_everything() -> None:
    assert not any(PermissionSet.none().allows(domain) for domain in Domain)


def test_gate_reads_live_config(tmp_path) -> None:
    store = ConfigStore(tmp_path / "config.toml", persist=False)
    gate = PermissionGate(store.permissions)

    assert gate.is_allowed(Domain.DEPLOY)
    store.update_config(deploy_enabled=False)

    assert gate.is_allowed(Domain.DEPLOY) is False
    assert gate.permissions.deploy is False


def test_fixed_gate() -> None:
    gate = PermissionGate.fixed(PermissionSet(git=False))

    assert gate.is_allowed(Domain.TERMINAL)
    assert not gate.is_allowed(Domain.GIT)
