"""
Main FastAPI application entry point.
Configures the application, middleware, and includes routers.
"""
from dotenv import load_dotenv

# Load environment variables from .env file first
load_dotenv()

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging
from . import __version__
from .appointments.router import router as reception_router
from .prescriptions.router import router as consultations_router
from .pharmacy.router import router as pharmacy_router
from .billing.router import router as billing_router
from .beds.router import router as beds_router
from .database import engine
from .config import settings
from .models import Base  # Import all models here for creating tables
from .exceptions import register_exception_handlers
from .core.middleware import setup_middlewares

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)

# Create database tables if they don't exist
Base.metadata.create_all(bind=engine)
logger.info("Starting Clinic Workflow API...")

# Create FastAPI application
app = FastAPI(
    title="Clinic Workflow API",
    description="Registration, consultation, pharmacy, billing and bed management for a small clinic",
    version=__version__
)

# Register exception handlers
register_exception_handlers(app)

# Configure CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Setup custom middleware
setup_middlewares(app)

# Include routers
app.include_router(reception_router, prefix="/api/v1/reception", tags=["Reception"])
app.include_router(consultations_router, prefix="/api/v1/consultations", tags=["Consultations"])
app.include_router(pharmacy_router, prefix="/api/v1/pharmacy", tags=["Pharmacy"])
app.include_router(billing_router, prefix="/api/v1/billing", tags=["Billing"])
app.include_router(beds_router, prefix="/api/v1/beds", tags=["Beds"])

# Root endpoint
@app.get("/")
def root():
    """
    Root endpoint for API health check.

    Returns:
        dict: Welcome message and API version
    """
    return {"message": "Welcome to Clinic Workflow API", "version": __version__}

# Health check endpoint
@app.get("/health")
async def health_check():
    """
    Health check endpoint for monitoring.

    Returns:
        dict: Health status information
    """
    return {"status": "healthy", "database": "connected"}
