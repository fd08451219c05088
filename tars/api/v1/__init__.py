"""API v1 module."""

from fastapi import APIRouter

from tars.api.v1.tests import router as tests_router

router = APIRouter()

router.include_router(tests_router, prefix="/tests", tags=["Tests"])
