import os
from dotenv import load_dotenv

load_dotenv()

ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
API_VERSION = "1.0.0"

SECRET_KEY = os.getenv("JWT_SECRET", os.getenv("SECRET_KEY", "bb3911aacc0a1c464b78b7aa8790abf325b14be2e1a16fbf409d61a649575f85"))
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 24))  # 1 day
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", 12))

# Shared code required to register as employee or admin
EMPLOYEE_SIGNUP_CODE = os.getenv("EMPLOYEE_SIGNUP_CODE")


def _database_url() -> str:
    url = os.getenv("DATABASE_URL")
    if url:
        return url
    host = os.getenv("DB_HOST")
    if host:
        user = os.getenv("DB_USER", "postgres")
        password = os.getenv("DB_PASSWORD", "")
        port = os.getenv("DB_PORT", "5432")
        name = os.getenv("DB_NAME", "wanderlust_travel")
        return f"postgresql+psycopg2://{user}:{password}@{host}:{port}/{name}"
    return "sqlite:///./wanderlust.db"


DATABASE_URL = _database_url()

CORS_ORIGINS = [origin.strip() for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",") if origin.strip()]
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
SERVICE_NAME = os.getenv("POWERTOOLS_SERVICE_NAME", "wanderlust-api")

# Third-party providers
RAPIDAPI_KEY = os.getenv("RAPIDAPI_KEY", "")
RAPIDAPI_HOST = os.getenv("RAPIDAPI_HOST", "sky-scanner3.p.rapidapi.com")
HOTELBEDS_API_KEY = os.getenv("HOTELBEDS_API_KEY", "")
HOTELBEDS_SECRET = os.getenv("HOTELBEDS_SECRET", "")
HOTELBEDS_BASE_URL = os.getenv("HOTELBEDS_BASE_URL", "https://api.test.hotelbeds.com")
EXTERNAL_API_TIMEOUT = float(os.getenv("EXTERNAL_API_TIMEOUT", 10))


def is_production() -> bool:
    return ENVIRONMENT == "production"
