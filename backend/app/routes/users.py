"""
API Routes для пользователей и зависимости авторизации.
"""

import logging
from typing import Any, Dict, Optional

import jwt
from fastapi import APIRouter, Depends, Header, HTTPException

from ..config import settings
from ..models.discount import GuestIdentity, Identity, UserIdentity

router = APIRouter()
logger = logging.getLogger(__name__)


def decode_token(authorization: Optional[str]) -> Optional[Dict[str, Any]]:
    """Проверяет Bearer-токен и возвращает его claims или None."""
    if not authorization:
        return None

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None

    try:
        return jwt.decode(token.strip(), settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.PyJWTError as e:
        logger.debug(f"[AUTH] Token rejected: {e}")
        return None


async def get_token_claims(
    authorization: Optional[str] = Header(None)
) -> Optional[Dict[str, Any]]:
    """Claims из заголовка Authorization, если токен валиден.
    Для публичных endpoints: отсутствие токена - не ошибка.
    """
    return decode_token(authorization)


def resolve_identity(claims: Optional[Dict[str, Any]], email: Optional[str] = None) -> Identity:
    """Пользователь из токена, иначе гость с email из запроса."""
    if claims and claims.get("userId"):
        return UserIdentity(user_id=claims["userId"])
    return GuestIdentity(email=email.strip() if email and email.strip() else None)


async def require_admin(
    claims: Optional[Dict[str, Any]] = Depends(get_token_claims)
) -> Dict[str, Any]:
    """Пропускает только администраторов."""
    if claims is None:
        raise HTTPException(status_code=401, detail="Authorization required")
    if claims.get("role") != "admin":
        raise HTTPException(status_code=403, detail="Admin access required")
    return claims


@router.get("/me")
async def get_me(claims: Optional[Dict[str, Any]] = Depends(get_token_claims)):
    """Получает данные текущего пользователя из токена."""
    if claims is None:
        raise HTTPException(status_code=401, detail="Authorization required")
    identity = resolve_identity(claims)
    return {**identity.model_dump(), "role": claims.get("role")}
