from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from order_chat_service.app.dependencies.services import get_authenticator
from order_chat_service.app.service.auth import Actor, TokenAuthenticator
from order_chat_service.app.service.exceptions import AuthorizationError

# Missing credentials are reported by the authenticator, not by FastAPI's 403 default.
bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    authenticator: TokenAuthenticator = Depends(get_authenticator),
) -> Actor:
    return authenticator.authenticate(credentials.credentials if credentials else None)


async def require_order_manager(actor: Actor = Depends(get_current_actor)) -> Actor:
    if not actor.can_manage_orders:
        raise AuthorizationError("Order management access required")
    return actor


async def require_admin(actor: Actor = Depends(get_current_actor)) -> Actor:
    if not actor.is_admin:
        raise AuthorizationError("Admin access required")
    return actor
