"""
Authorization policy tests.

Verifies:
- Default grants: admin and accountant may do everything, manager nothing
- Deny by default for unknown roles
- Policies built from configuration reject unknown operation names
"""

import logging
from uuid import uuid4

import pytest

from ledger_kernel.config import LedgerConfig
from ledger_kernel.exceptions import PermissionDeniedError
from ledger_kernel.services.authorization import (
    ALL_OPERATIONS,
    AuthorizationPolicy,
    Operation,
    Role,
)


class TestDefaultPolicy:
    @pytest.mark.parametrize("operation", list(Operation))
    def test_admin_and_accountant_granted_everything(self, operation):
        policy = AuthorizationPolicy.default()
        assert policy.is_allowed(Role.ADMIN, operation)
        assert policy.is_allowed("accountant", operation.value)

    @pytest.mark.parametrize("operation", list(Operation))
    def test_manager_denied_everything(self, operation):
        policy = AuthorizationPolicy.default()
        with pytest.raises(PermissionDeniedError) as exc_info:
            policy.authorize(Role.MANAGER, operation)
        assert exc_info.value.code == "PERMISSION_DENIED"

    def test_unknown_role_denied(self):
        allowed, reason = AuthorizationPolicy.default().check("auditor", Operation.ENTRY_VIEW)
        assert not allowed
        assert "Unknown role" in reason

    def test_roles_listed(self):
        assert AuthorizationPolicy.default().roles == ("accountant", "admin", "manager")

    def test_twenty_operations(self):
        assert len(ALL_OPERATIONS) == 20


class TestConfiguredPolicy:
    def test_from_mapping(self):
        policy = AuthorizationPolicy.from_mapping({
            "manager": ["entry.view", Operation.REPORT_VIEW],
        })
        assert policy.is_allowed("manager", Operation.REPORT_VIEW)
        assert not policy.is_allowed("manager", Operation.ENTRY_POST)
        assert policy.operations_for("manager") == {"entry.view", "report.view"}

    def test_unknown_operation_rejected(self):
        with pytest.raises(ValueError, match="entry.approve"):
            AuthorizationPolicy.from_mapping({"manager": ["entry.approve"]})

    def test_from_config_without_section_uses_default(self):
        policy = AuthorizationPolicy.from_config(LedgerConfig())
        assert policy == AuthorizationPolicy.default()

    def test_from_config_section(self):
        config = LedgerConfig(authorization={"clerk": ("entry.create",)})
        policy = AuthorizationPolicy.from_config(config)
        assert policy.roles == ("clerk",)
        assert not policy.is_allowed("accountant", Operation.ENTRY_CREATE)


class TestDenialLogging:
    def test_denial_logged_as_warning(self, captured_logs):
        with pytest.raises(PermissionDeniedError):
            AuthorizationPolicy.default().authorize("manager", Operation.ENTRY_POST)

        denied = [r for r in captured_logs() if r["message"] == "permission_denied"]
        assert len(denied) == 1
        assert denied[0]["level"] == logging.getLevelName(logging.WARNING)
        assert denied[0]["operation"] == "entry.post"
