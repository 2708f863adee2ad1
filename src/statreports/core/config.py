import os

# In a real deployment, load from environment variables or a secrets store
DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite://./statreports.sqlite3")

SECRET_KEY: str = os.getenv(
    "SECRET_KEY", "your-secret-key-for-jwt-!ChangeMe!"
)
ALGORITHM: str = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30"))

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

# Upper bound on concurrent per-entity store fetches for a single report
REPORT_FETCH_CONCURRENCY: int = max(1, int(os.getenv("REPORT_FETCH_CONCURRENCY", "4")))

MODEL_MODULES: list[str] = [
    "statreports.features.auth.models",
    "statreports.features.catalog.models",
    "aerich.models",  # For Aerich migrations
]
