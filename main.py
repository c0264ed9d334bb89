# main.py
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.exc import SQLAlchemyError
from dotenv import load_dotenv
import logging
import os

# Load environment variables
load_dotenv()

# Configure logging
logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
logger = logging.getLogger(__name__)

from database import init_db
from paths import UPLOAD_DIR
from Services.storage import using_supabase_storage
from Services.booking_router import router as booking_router
from Services.vehicle_router import router as vehicle_router
from Services.vehicle_type_router import router as vehicle_type_router
from Services.vehicle_category_router import router as vehicle_category_router
from Services.vendor_application_router import router as vendor_application_router
from Services.vendor_application_router import applicant_router as vendor_applicant_router
from Services.vendor_vehicle_router import router as vendor_vehicle_router
from Services.blog_post_router import router as blog_post_router
from Services.blog_category_router import router as blog_category_router
from Services.blog_tag_router import router as blog_tag_router
from Services.review_router import router as review_router
from Services.route_router import router as route_router
from Services.vendor_route_router import router as vendor_route_router
from Services.location_router import router as location_router
from Services.currency_router import router as currency_router
from Services.public_router import router as public_router

ENVIRONMENT = os.getenv("ENVIRONMENT", "development")

# Create FastAPI app
app = FastAPI(
    title="Transfers Console API",
    description="""
    Admin and vendor console for the transfers booking platform:
    - Booking management and vendor assignment
    - Vehicle fleet management (admin and vendor)
    - Blog posts, categories and tags
    - Review moderation
    - Routes and locations
    - Currency settings and exchange rates
    """,
    version="1.0.0",
    debug=ENVIRONMENT == "development"
)

def _cors_origins():
    raw = os.getenv("CORS_ORIGINS", "*")
    return [origin.strip() for origin in raw.split(",") if origin.strip()]

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"Database error on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "A database error occurred", "type": type(exc).__name__}
    )

# Exception handler for detailed error messages
@app.exception_handler(Exception)
async def debug_exception_handler(request: Request, exc: Exception):
    logger.error(f"Error processing request: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": str(exc), "type": type(exc).__name__}
    )

# Admin routers
app.include_router(booking_router, prefix="/api/admin/bookings", tags=["bookings"])
app.include_router(vehicle_router, prefix="/api/admin/vehicles", tags=["vehicles"])
app.include_router(vehicle_type_router, prefix="/api/admin/vehicle-types", tags=["vehicles"])
app.include_router(vehicle_category_router, prefix="/api/admin/vehicle-categories", tags=["vehicles"])
app.include_router(vendor_application_router, prefix="/api/admin/vendor-applications", tags=["vendors"])
app.include_router(blog_post_router, prefix="/api/admin/blog/posts", tags=["blog"])
app.include_router(blog_category_router, prefix="/api/admin/blog/categories", tags=["blog"])
app.include_router(blog_tag_router, prefix="/api/admin/blog/tags", tags=["blog"])
app.include_router(review_router, prefix="/api/admin/reviews", tags=["reviews"])
app.include_router(route_router, prefix="/api/admin/routes", tags=["routes"])
app.include_router(location_router, prefix="/api/admin/locations", tags=["locations"])
app.include_router(currency_router, prefix="/api/admin/currencies", tags=["currencies"])

# Vendor routers
app.include_router(vendor_applicant_router, prefix="/api/account/vendor-application", tags=["vendor"])
app.include_router(vendor_vehicle_router, prefix="/api/vendor/vehicles", tags=["vendor"])
app.include_router(vendor_route_router, prefix="/api/vendor/routes", tags=["vendor"])

# Public mirror
app.include_router(public_router, prefix="/api/public", tags=["public"])

# Locally stored uploads are served by the app itself
if not using_supabase_storage():
    UPLOAD_DIR.mkdir(parents=True, exist_ok=True)
    app.mount("/uploads", StaticFiles(directory=str(UPLOAD_DIR)), name="uploads")

# Initialize database on startup
@app.on_event("startup")
async def startup_event():
    logger.info("Initializing database...")
    try:
        init_db()
        logger.info("Database initialized successfully")
    except SQLAlchemyError as e:
        logger.error(f"Failed to initialize database: {e}", exc_info=True)
        raise

@app.get("/")
async def root():
    return {
        "message": "Welcome to the Transfers Console API",
        "version": "1.0.0",
        "docs_url": "/docs",
        "redoc_url": "/redoc"
    }

@app.get("/health")
async def health():
    return {"status": "ok", "environment": ENVIRONMENT}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")), log_level=os.getenv("LOG_LEVEL", "info").lower())
