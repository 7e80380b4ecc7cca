# utils/auth.py
from typing import Callable, Optional
from fastapi import Depends, Request

from services.identity_service import Identity, identity_resolver, credential_from_sources
from models.user import UserRole
from utils.errors import Unauthenticated, Forbidden


def get_current_identity(request: Request) -> Identity:
    """
    FastAPI dependency to get the caller.
    Prioritizes Authorization header, then 'token' query parameter, then the auth cookie.
    """
    credential = credential_from_sources(request.headers, request.query_params, request.cookies)
    return identity_resolver.resolve(credential)


def get_optional_identity(request: Request) -> Optional[Identity]:
    """Anonymous callers get None instead of a 401"""
    try:
        return get_current_identity(request)
    except Unauthenticated:
        return None


def require_user() -> Callable:
    def user_checker(identity: Identity = Depends(get_current_identity)) -> Identity:
        return identity

    return user_checker


def require_roles(*roles: UserRole) -> Callable:
    allowed = {role.value for role in roles}

    def role_checker(identity: Identity = Depends(get_current_identity)) -> Identity:
        if identity.role not in allowed:
            raise Forbidden(f"Requires one of roles: {', '.join(sorted(allowed))}")
        return identity

    return role_checker


def require_admin() -> Callable:
    """Decorator to require admin role"""
    return require_roles(UserRole.ADMIN)
