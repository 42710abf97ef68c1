from fastapi import Depends, HTTPException, status
from fastapi.requests import HTTPConnection
from fastapi.security import HTTPAuthorizationCredentials

from ..core.cache import get_redis
from ..core.config import settings
from ..core.security import security, verify_token, AuthenticationError, TokenPayload
from ..services.session_registry import SessionRegistry
from ..services.signaling_relay import SignalingRelay


async def get_current_user_token(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> TokenPayload:
    """Extract and verify JWT token from Authorization header."""
    token = credentials.credentials

    # Verify token
    token_payload = verify_token(token)
    if not token_payload:
        raise AuthenticationError("Invalid or expired token")

    # Check if token is access token
    if token_payload.token_type != "access":
        raise AuthenticationError("Invalid token type")

    return token_payload


async def get_current_user_id(
    token_payload: TokenPayload = Depends(get_current_user_token)
) -> str:
    """Verified id of the caller, as issued by the auth service."""
    if not token_payload.sub:
        raise AuthenticationError("Invalid token payload")
    return token_payload.sub


def get_session_registry(connection: HTTPConnection) -> SessionRegistry:
    return connection.app.state.session_registry


def get_signaling_relay(connection: HTTPConnection) -> SignalingRelay:
    return connection.app.state.signaling_relay


# Rate limiting dependency
async def session_rate_limit(
    user_id: str = Depends(get_current_user_id),
    redis_client = Depends(get_redis)
) -> None:
    """Cap how many sessions one user may create per window."""
    limit = settings.SESSION_CREATE_RATE_LIMIT
    if limit <= 0:
        return

    key = f"rate_limit:create_session:{user_id}"

    current_requests = redis_client.get(key)
    if current_requests is None:
        redis_client.setex(key, settings.SESSION_CREATE_RATE_WINDOW_SECONDS, 1)
    else:
        if int(current_requests) >= limit:
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Too many sessions created. Please try again later."
            )
        redis_client.incr(key)
