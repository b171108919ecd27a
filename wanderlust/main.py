import logging
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import API_VERSION, CORS_ORIGINS, ENVIRONMENT
from .database import init_db
from .errors import register_exception_handlers
from .request_logger import log_requests, setup_logging
from .routes import auth, bookings, external, favorites, hotels, messages, reviews

setup_logging()
logger = logging.getLogger(__name__)

init_db()

app = FastAPI(title="Wanderlust Travel API", version=API_VERSION)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)
app.middleware("http")(log_requests)
register_exception_handlers(app)

# Include API routes
app.include_router(auth.router, prefix="/api/auth", tags=["Auth"])
app.include_router(hotels.router, prefix="/api/hotels", tags=["Hotels"])
app.include_router(bookings.router, prefix="/api/bookings", tags=["Bookings"])
app.include_router(reviews.router, prefix="/api/reviews", tags=["Reviews"])
app.include_router(favorites.router, prefix="/api/favorites", tags=["Favorites"])
app.include_router(messages.router, prefix="/api/messages", tags=["Messages"])
app.include_router(external.router, prefix="/api/external", tags=["External"])


def health_payload() -> dict:
    return {
        "success": True,
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": API_VERSION,
        "environment": ENVIRONMENT,
    }


@app.get("/health")
def health():
    return health_payload()


@app.get("/api/health")
def api_health():
    return health_payload()


@app.get("/api")
def root():
    return {
        "success": True,
        "message": "Welcome to the Wanderlust Travel API",
        "version": API_VERSION,
        "endpoints": {
            "auth": "/api/auth",
            "hotels": "/api/hotels",
            "bookings": "/api/bookings",
            "reviews": "/api/reviews",
            "favorites": "/api/favorites",
            "messages": "/api/messages",
            "external": "/api/external",
            "health": "/api/health",
        },
    }


logger.info("Wanderlust Travel API %s started (%s)", API_VERSION, ENVIRONMENT)
