"""
Wingside API - FastAPI application
Orders, payments, gift cards and loyalty points on top of Supabase
"""

import logging
import uuid

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from wingside.api import admin, auth, catalog, cron, customers, gift_cards, kitchen, orders, payments, promo_codes, rewards
from wingside.core.context import request_id_var, user_id_var
from wingside.core.errors import AppError, RateLimited
from wingside.core.logging import setup_api_logger
from wingside.core.settings import settings

setup_api_logger()
logger = logging.getLogger(__name__)

VERSION = "1.0.0"

app = FastAPI(
    title=settings.APP_NAME,
    description="Ordering, payment reconciliation, gift cards and rewards for Wingside",
    version=VERSION,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_context(request: Request, call_next):
    """Tag every log line of a request with its id and echo the id back"""
    request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:12]
    request_token = request_id_var.set(request_id)
    user_token = user_id_var.set(None)
    try:
        response = await call_next(request)
    finally:
        request_id_var.reset(request_token)
        user_id_var.reset(user_token)
    response.headers["X-Request-ID"] = request_id
    return response


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(f"❌ {request.method} {request.url.path} failed: {exc.message}")
    headers = {"Retry-After": str(exc.retry_after)} if isinstance(exc, RateLimited) else None
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    details = [
        {"field": ".".join(str(part) for part in err["loc"][1:]), "message": err["msg"]}
        for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"error": "Invalid request", "details": details})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception(f"❌ Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "version": VERSION, "environment": settings.ENVIRONMENT}


# Include routers
app.include_router(auth.router, prefix="/api/auth", tags=["Auth"])
app.include_router(orders.router, prefix="/api/orders", tags=["Orders"])
app.include_router(payments.router, prefix="/api/payment", tags=["Payments"])
app.include_router(promo_codes.router, prefix="/api/promo-codes", tags=["Promo Codes"])
app.include_router(gift_cards.router, prefix="/api/gift-cards", tags=["Gift Cards"])
app.include_router(rewards.router, prefix="/api/rewards", tags=["Rewards"])
app.include_router(catalog.router, prefix="/api", tags=["Catalog"])
app.include_router(admin.router, prefix="/api/admin", tags=["Admin"])
app.include_router(customers.router, prefix="/api/customers", tags=["Customers"])
app.include_router(cron.router, prefix="/api/cron", tags=["Cron"])
app.include_router(kitchen.router, tags=["Kitchen"])
