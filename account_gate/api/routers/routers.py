# Central API router include file
from fastapi import APIRouter

# Import domain routers
from account_gate.verification.router import admin_router as verification_admin_router
from account_gate.verification.router import router as verification_router
from account_gate.telegram.router import router as telegram_router

# Create main API router
api_router = APIRouter()

# Include domain routers with prefixes
api_router.include_router(verification_router)
api_router.include_router(verification_admin_router)
api_router.include_router(telegram_router)
