from fastapi import APIRouter

from rentpay.domains.payments.api.routes import router as payments_router

api_router = APIRouter()

# API routes (all have the API_V1_STR prefix from the app factory)
api_router.include_router(payments_router)
