"""
Main FastAPI Application
Entry point for the backend server
"""
import logging
import os
import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from contextlib import asynccontextmanager
from datetime import datetime
from motor.motor_asyncio import AsyncIOMotorClient
from beanie import init_beanie
from pymongo.errors import ConnectionFailure, ExecutionTimeout

from app.config import settings
from app.core.exceptions import BookingError, TransientError
from app.core.logging import configure_logging
from app.core.security import hash_password
from app.models.employee import Employee, EmployeeRole
from app.models.available_date import AvailableDate
from app.models.booking import Booking
from app.models.notification import Notification

# Import routers
from app.api.routes import auth, bookings, approvals, dates, users, vendor, summary, notifications

logger = logging.getLogger(__name__)

DOCUMENT_MODELS = [Employee, AvailableDate, Booking, Notification]


async def ensure_default_admin() -> None:
    """Create the first admin account if the database has none"""
    admin_count = await Employee.find(Employee.role == EmployeeRole.ADMIN).count()
    if admin_count > 0:
        return

    logger.info("🆕 No admin users found. Creating default admin...")
    admin = Employee(
        employee_id=settings.DEFAULT_ADMIN_EMAIL,
        name="System Admin",
        email=settings.DEFAULT_ADMIN_EMAIL,
        department="Management",
        role=EmployeeRole.ADMIN,
        password_hash=hash_password(settings.DEFAULT_ADMIN_PASSWORD),
    )
    await admin.insert()
    logger.info("✅ Default admin created (%s)", settings.DEFAULT_ADMIN_EMAIL)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    logger.info("🚀 Starting %s...", settings.APP_NAME)

    # Initialize MongoDB
    client = AsyncIOMotorClient(
        settings.MONGODB_URL,
        serverSelectionTimeoutMS=settings.DB_TIMEOUT_MS,
        connectTimeoutMS=settings.DB_TIMEOUT_MS,
        socketTimeoutMS=settings.DB_TIMEOUT_MS,
    )
    database = client[settings.MONGODB_DB_NAME]

    # Initialize Beanie with document models
    await init_beanie(database=database, document_models=DOCUMENT_MODELS)
    logger.info("✅ Connected to MongoDB: %s", settings.MONGODB_DB_NAME)

    await ensure_default_admin()
    logger.info("✅ Server running on %s:%s", settings.HOST, settings.PORT)

    yield

    # Shutdown
    logger.info("👋 Shutting down...")
    client.close()


# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Workplace meal booking with payment-proof review and kitchen lists",
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(ConnectionFailure)
@app.exception_handler(ExecutionTimeout)
async def database_unavailable_handler(request: Request, exc: Exception):
    logger.error("Database unavailable during %s %s: %s", request.method, request.url.path, exc)
    error = TransientError("Service temporarily unavailable, please try again")
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


# Include routers
app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
app.include_router(bookings.router, prefix="/api/bookings", tags=["Bookings"])
app.include_router(approvals.router, prefix="/api/approvals", tags=["Approvals"])
app.include_router(dates.router, prefix="/api/dates", tags=["Available Dates"])
app.include_router(users.router, prefix="/api/users", tags=["Users"])
app.include_router(vendor.router, prefix="/api/vendor", tags=["Vendor"])
app.include_router(summary.router, prefix="/api/summary", tags=["Summary"])
app.include_router(notifications.router, prefix="/api/notifications", tags=["Notifications"])

# Mount static files (for uploads)
os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=settings.UPLOAD_DIR), name="uploads")


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": f"{settings.APP_NAME} API",
        "version": settings.APP_VERSION,
        "docs": "/api/docs"
    }


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat()
    }


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
