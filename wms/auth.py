from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from wms.db import get_db
from wms.errors import PermissionDeniedError
from wms.models import UserRole as Role
from wms.security.sessions import bearer_token, load_principal_from_token
from wms.services.catalog_service import get_branch


@dataclass
class Principal:
    id: int
    username: str
    full_name: str
    role: Role
    organization_id: int
    branch_id: int | None
    active: bool


def get_current_principal(request: Request, db: Session = Depends(get_db)) -> Principal:
    principal = load_principal_from_token(db, bearer_token(request))
    if not principal:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail='Not authenticated',
            headers={'WWW-Authenticate': 'Bearer'},
        )
    # Persist the sliding expiry before the endpoint runs.
    db.commit()
    if not principal.active:
        raise PermissionDeniedError(f'User {principal.username} is inactive')
    request.state.principal = principal
    return principal


def require_role(*allowed: Role):
    def _dep(principal: Principal = Depends(get_current_principal)) -> Principal:
        if principal.role not in allowed:
            raise PermissionDeniedError(f'Role {principal.role.value} may not perform this action')
        return principal

    return _dep


require_manager = require_role(Role.ADMIN, Role.MANAGER)


def assert_branch_scope(db: Session, principal: Principal, target_branch_id: int) -> None:
    branch = get_branch(db, target_branch_id)
    if branch.organization_id != principal.organization_id:
        raise PermissionDeniedError(f'Branch {target_branch_id} is outside your organization')
    if principal.role != Role.OPERATOR:
        return
    if principal.branch_id != target_branch_id:
        raise PermissionDeniedError(f'Branch {target_branch_id} is outside your assignment')


def assert_organization_scope(principal: Principal, organization_id: int) -> None:
    if principal.organization_id != organization_id:
        raise PermissionDeniedError(f'Organization {organization_id} is outside your access')
