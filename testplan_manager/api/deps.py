"""
FastAPI dependencies shared by the routers.
"""
from fastapi import Depends, HTTPException, status
from testplan_manager.models.account import SessionIdentity
from testplan_manager.services.accounts import AccountService
from testplan_manager.services.plan_repository import TestPlanRepository
from testplan_manager.services.storage import KeyValueStore, get_store


def get_repository(store: KeyValueStore = Depends(get_store)) -> TestPlanRepository:
    return TestPlanRepository(store)


def get_accounts(store: KeyValueStore = Depends(get_store)) -> AccountService:
    return AccountService(store)


def require_session(accounts: AccountService = Depends(get_accounts)) -> SessionIdentity:
    """Current session identity, or 401 when nobody is logged in."""
    identity = accounts.current_session()
    if identity is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not logged in")
    return identity


def require_admin(identity: SessionIdentity = Depends(require_session)) -> SessionIdentity:
    """
    Current session identity if it has the admin role, else 403.

    This is a UI affordance for the local workspace, not a security boundary.
    """
    if not identity.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Restricted to admins")
    return identity
