"""
API Routes магазина.
"""

from .users import router as users_router
from .discount_codes import router as discount_codes_router

__all__ = [
    "users_router",
    "discount_codes_router",
]
