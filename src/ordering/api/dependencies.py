"""FastAPI dependencies: the calling principal and the service container."""

from fastapi import Header, Request
from protean.exceptions import ValidationError

from ordering.container import Services
from ordering.principal import Principal, Role


def principal_from(principal_id: str | None, role: str | None, permissions: str | None) -> Principal:
    """Build a principal from the upstream-authenticated identity values."""
    try:
        resolved_role = Role((role or Role.ANONYMOUS.value).lower())
    except ValueError:
        raise ValidationError({"role": [f"Unknown role {role}"]})

    if resolved_role != Role.ANONYMOUS and not principal_id:
        raise ValidationError({"principal": ["A principal id is required for this role"]})

    granted = frozenset(p.strip() for p in (permissions or "").split(",") if p.strip())
    if resolved_role == Role.ANONYMOUS:
        return Principal.anonymous()
    if resolved_role == Role.CUSTOMER:
        return Principal.customer(principal_id)
    return Principal(id=str(principal_id), role=Role.ADMIN, permissions=granted)


async def get_principal(
    x_principal_id: str | None = Header(default=None),
    x_principal_role: str | None = Header(default=None),
    x_principal_permissions: str | None = Header(default=None),
) -> Principal:
    return principal_from(x_principal_id, x_principal_role, x_principal_permissions)


def get_services(request: Request) -> Services:
    return request.app.state.services
