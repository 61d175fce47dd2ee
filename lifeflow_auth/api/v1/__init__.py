"""
API v1 routes.
"""

from fastapi import APIRouter

from lifeflow_auth.api.v1 import admin, auth
from lifeflow_auth.schemas.common import ErrorResponse

# Every AuthError is rendered in this shape by the handler in main.py
router = APIRouter(
    responses={
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    }
)

router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
router.include_router(admin.router, prefix="/admin", tags=["Admin"])
