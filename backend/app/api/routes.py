from fastapi import APIRouter

from app.api.auth import router as auth_router
from app.api.calls import router as calls_router
from app.api.messages import router as messages_router
from app.api.profile import router as profile_router
from app.api.wallet import router as wallet_router

router = APIRouter()

router.include_router(auth_router, prefix="/auth", tags=["auth"])
router.include_router(profile_router)
router.include_router(messages_router)
router.include_router(calls_router)
router.include_router(wallet_router)


@router.get("/", tags=["root"])
def read_root() -> dict[str, str]:
    return {"message": "Welcome to the Parley API"}
