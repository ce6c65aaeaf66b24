import os

from dotenv import load_dotenv

load_dotenv()

DATABASE_PATH = os.getenv("DATABASE_PATH", "medvault.db")

DATABASE_URL = os.getenv("DATABASE_URL", "")
DATABASE_MAX_CONNECTIONS = int(os.getenv("DATABASE_MAX_CONNECTIONS", "5"))

# Bearer token verification (tokens are issued by the identity service)
JWT_SECRET = os.getenv("JWT_SECRET", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "60"))

API_PREFIX = os.getenv("API_PREFIX", "/api")
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# When enabled, providers may only query records of patients assigned to them
RESTRICT_PROVIDER_PATIENT_QUERIES = os.getenv(
    "RESTRICT_PROVIDER_PATIENT_QUERIES", "false"
).lower() in ("1", "true", "yes", "on")
