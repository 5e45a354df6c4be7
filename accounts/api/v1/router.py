"""API v1 router aggregator.

All v1 endpoint routers are included here.
"""

from fastapi import APIRouter

from accounts.api.v1 import users

router = APIRouter()

router.include_router(users.router, prefix="/users", tags=["users"])
