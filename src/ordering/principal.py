"""The caller identity the core operates on.

Authentication happens upstream; by the time a request reaches the ordering
core it carries an already-resolved principal.
"""

from dataclasses import dataclass, field
from enum import Enum

from ordering.errors import Forbidden


class Role(Enum):
    ADMIN = "admin"
    CUSTOMER = "customer"
    ANONYMOUS = "anonymous"


class Permission:
    MANAGE_ORDERS = "manage_orders"
    VIEW_ANALYTICS = "view_analytics"
    MANAGE_COUPONS = "manage_coupons"


@dataclass(frozen=True)
class Principal:
    id: str | None = None
    role: Role = Role.ANONYMOUS
    permissions: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def anonymous(cls) -> "Principal":
        return cls()

    @classmethod
    def customer(cls, customer_id: str) -> "Principal":
        return cls(id=str(customer_id), role=Role.CUSTOMER)

    @classmethod
    def admin(cls, admin_id: str, permissions=None) -> "Principal":
        if permissions is None:
            permissions = {Permission.MANAGE_ORDERS, Permission.VIEW_ANALYTICS, Permission.MANAGE_COUPONS}
        return cls(id=str(admin_id), role=Role.ADMIN, permissions=frozenset(permissions))

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @property
    def is_customer(self) -> bool:
        return self.role == Role.CUSTOMER and self.id is not None

    def can(self, permission: str) -> bool:
        return self.is_admin and permission in self.permissions

    def require(self, permission: str) -> None:
        if not self.can(permission):
            raise Forbidden(f"Permission '{permission}' required")

    def owns(self, customer_id) -> bool:
        return self.is_customer and customer_id is not None and str(customer_id) == self.id
