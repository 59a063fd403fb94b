"""
ledger_kernel.services.authorization -- role/operation authorization policy.

Responsibility:
    Decide whether a role may perform a ledger operation.  The policy is an
    explicit lookup keyed by (role, operation) and knows nothing about
    transports, sessions or users.

Architecture position:
    Kernel > Services -- pure evaluation, zero I/O.  LedgerFacade consults
    it before delegating to a service or selector.

Invariants enforced:
    - Deny by default: an unknown role or an operation not granted to the
      role is refused.
    - Operation names are validated when a policy is built, so a typo in
      configuration fails at load time rather than silently denying.

Failure modes:
    - PermissionDeniedError from authorize().
    - ValueError from from_mapping() for unknown operation names.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum

from ledger_kernel.config import LedgerConfig
from ledger_kernel.exceptions import PermissionDeniedError
from ledger_kernel.logging_config import get_logger

logger = get_logger("services.authorization")


class Role(str, Enum):
    ADMIN = "admin"
    ACCOUNTANT = "accountant"
    MANAGER = "manager"


class Operation(str, Enum):
    """Every guarded ledger operation."""

    CATEGORY_MANAGE = "category.manage"

    ACCOUNT_CREATE = "account.create"
    ACCOUNT_UPDATE = "account.update"
    ACCOUNT_DEACTIVATE = "account.deactivate"
    ACCOUNT_ACTIVATE = "account.activate"
    ACCOUNT_DELETE = "account.delete"
    ACCOUNT_VIEW = "account.view"

    YEAR_CREATE = "year.create"
    YEAR_UPDATE = "year.update"
    YEAR_DELETE = "year.delete"
    YEAR_ACTIVATE = "year.activate"
    YEAR_LOCK = "year.lock"
    YEAR_VIEW = "year.view"

    ENTRY_CREATE = "entry.create"
    ENTRY_UPDATE = "entry.update"
    ENTRY_POST = "entry.post"
    ENTRY_CANCEL = "entry.cancel"
    ENTRY_DELETE = "entry.delete"
    ENTRY_VIEW = "entry.view"

    REPORT_VIEW = "report.view"


ALL_OPERATIONS: frozenset[str] = frozenset(op.value for op in Operation)

DEFAULT_GRANTS: Mapping[str, frozenset[str]] = {
    Role.ADMIN.value: ALL_OPERATIONS,
    Role.ACCOUNTANT.value: ALL_OPERATIONS,
    Role.MANAGER.value: frozenset(),
}


def _value(item: str | Enum) -> str:
    return item.value if isinstance(item, Enum) else str(item)


@dataclass(frozen=True)
class AuthorizationPolicy:
    """
    Immutable (role, operation) grant table.

    Usage:
        policy = AuthorizationPolicy.default()
        policy.authorize("accountant", Operation.ENTRY_POST)
    """

    grants: Mapping[str, frozenset[str]] = field(
        default_factory=lambda: dict(DEFAULT_GRANTS)
    )

    @classmethod
    def default(cls) -> AuthorizationPolicy:
        return cls()

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Iterable[str | Operation]]) -> AuthorizationPolicy:
        """Build a policy from ``{role: [operation, ...]}``."""
        grants: dict[str, frozenset[str]] = {}
        for role, operations in mapping.items():
            ops = frozenset(_value(op) for op in (operations or ()))
            unknown = ops - ALL_OPERATIONS
            if unknown:
                raise ValueError(
                    f"Unknown operations for role {_value(role)!r}: {sorted(unknown)}"
                )
            grants[_value(role)] = ops
        return cls(grants=grants)

    @classmethod
    def from_config(cls, config: LedgerConfig) -> AuthorizationPolicy:
        if config.authorization is None:
            return cls.default()
        return cls.from_mapping(config.authorization)

    @property
    def roles(self) -> tuple[str, ...]:
        return tuple(sorted(self.grants))

    def operations_for(self, role: str | Role) -> frozenset[str]:
        return self.grants.get(_value(role), frozenset())

    def check(self, role: str | Role, operation: str | Operation) -> tuple[bool, str]:
        """Return (allowed, reason)."""
        role_name = _value(role)
        op_name = _value(operation)
        if role_name not in self.grants:
            return False, f"Unknown role {role_name!r}"
        if op_name not in self.grants[role_name]:
            return False, f"Role {role_name!r} may not perform {op_name!r}"
        return True, f"Role {role_name!r} is granted {op_name!r}"

    def is_allowed(self, role: str | Role, operation: str | Operation) -> bool:
        return self.check(role, operation)[0]

    def authorize(self, role: str | Role, operation: str | Operation) -> None:
        """
        Raises:
            PermissionDeniedError: The role is not granted the operation.
        """
        allowed, reason = self.check(role, operation)
        if not allowed:
            logger.warning(
                "permission_denied",
                extra={"role": _value(role), "operation": _value(operation)},
            )
            raise PermissionDeniedError(_value(role), _value(operation), reason)
