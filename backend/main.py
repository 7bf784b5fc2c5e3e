"""
MedEase Clinic API - Main Application

Routers:
- auth_router.py - Sign-up, sign-in, current user
- appointments_router.py - Booking, calendars, status, notes, cancellation
- doctors_router.py - Doctor directory and admin maintenance
- patients_router.py - Patient profile, health metrics, medical conditions

Sample data is loaded separately: python seed_data.py
"""

import time
from datetime import datetime

import psutil
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session

from config import CORS_ORIGINS, CORS_ALLOW_CREDENTIALS, HOST, PORT, BASE_DIR, get_config_summary
from database import create_tables, get_db, User, Doctor, Patient, Appointment
from middleware import RequestLoggingMiddleware
from structured_logging import get_logger

from routers.auth_router import router as auth_router
from routers.appointments_router import router as appointments_router
from routers.doctors_router import router as doctors_router
from routers.patients_router import router as patients_router

logger = get_logger("api")

# =============================================================================
# APPLICATION SETUP
# =============================================================================

app = FastAPI(
    title="MedEase Clinic API",
    description="Patient registration, doctor directory, health records and appointment booking.",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Create database tables on startup
create_tables()
logger.info("MedEase Clinic API starting", extra={"config": get_config_summary()})

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=CORS_ALLOW_CREDENTIALS,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add request logging middleware (logs all API calls)
app.add_middleware(RequestLoggingMiddleware, log_headers=False)

# =============================================================================
# REGISTER ROUTERS
# =============================================================================

app.include_router(auth_router)
app.include_router(appointments_router)
app.include_router(doctors_router)
app.include_router(patients_router)

# =============================================================================
# ERROR HANDLERS
# =============================================================================

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies are client errors (400), like every other booking failure."""
    return JSONResponse(
        status_code=400,
        content={"detail": jsonable_encoder(exc.errors())},
        headers={"X-Error-Code": "VALIDATION_FAILED"},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(
        "Unhandled exception",
        extra={"http_path": request.url.path, "error_type": type(exc).__name__},
        exc_info=exc,
    )
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})

# =============================================================================
# HEALTH CHECK ENDPOINTS
# =============================================================================

@app.get("/")
def read_root():
    return {
        "message": "MedEase Clinic API v1.0",
        "status": "healthy",
        "docs": "/docs"
    }


@app.get("/health")
def health_check(db: Session = Depends(get_db)):
    """
    Basic health check endpoint.
    Returns database connectivity, row counts, memory, disk and uptime.
    """
    db_status = "healthy"
    tables = None
    try:
        db.execute(text("SELECT 1"))
        tables = {
            "users": db.query(User).count(),
            "doctors": db.query(Doctor).count(),
            "patients": db.query(Patient).count(),
            "appointments": db.query(Appointment).count(),
        }
    except Exception as e:
        logger.error("Health check database failure", extra={"error_message": str(e)})
        db_status = f"unhealthy: {str(e)}"

    memory = psutil.virtual_memory()
    disk = psutil.disk_usage(str(BASE_DIR))
    uptime_seconds = time.time() - psutil.Process().create_time()

    return {
        "status": "healthy" if db_status == "healthy" else "degraded",
        "timestamp": datetime.utcnow().isoformat(),
        "database": db_status,
        "tables": tables,
        "memory": {
            "total_gb": round(memory.total / (1024**3), 2),
            "available_gb": round(memory.available / (1024**3), 2),
            "used_percent": memory.percent,
        },
        "disk": {
            "total_gb": round(disk.total / (1024**3), 2),
            "free_gb": round(disk.free / (1024**3), 2),
            "used_percent": round(disk.percent, 1),
        },
        "uptime": _format_uptime(uptime_seconds),
        "uptime_seconds": round(uptime_seconds),
    }


def _format_uptime(seconds: float) -> str:
    """Format uptime seconds to human readable string."""
    days, remainder = divmod(int(seconds), 86400)
    hours, remainder = divmod(remainder, 3600)
    minutes, secs = divmod(remainder, 60)

    parts = []
    if days > 0:
        parts.append(f"{days}d")
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")
    parts.append(f"{secs}s")

    return " ".join(parts)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=HOST, port=PORT)
