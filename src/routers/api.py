from fastapi import APIRouter

from routers import ai, device

router = APIRouter()

# include sub-routers
router.include_router(device.router)
router.include_router(ai.router)
