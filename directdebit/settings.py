import os
from dotenv import load_dotenv

load_dotenv()

class Settings:
    API_KEY: str = os.getenv("API_KEY", "")

    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    RQ_QUEUE_NAME: str = os.getenv("RQ_QUEUE_NAME", "export")

    # Submission store
    # - "redis": durable store (production)
    # - "memory": process-local store for local runs; Redis is not contacted, so
    #   metrics are not recorded and /admin/stats reports zeros
    STORE_BACKEND: str = os.getenv("STORE_BACKEND", "redis").lower()
    STORE_TIMEOUT_SEC: float = float(os.getenv("STORE_TIMEOUT_SEC", "5"))
    SUBMISSION_KEY_PREFIX: str = os.getenv("SUBMISSION_KEY_PREFIX", "submission:")

    # Shared-secret retrieval
    # - "env": secrets come from environment variables derived from the secret path
    # - "http": secrets come from a parameter-store style HTTP endpoint
    SECRET_BACKEND: str = os.getenv("SECRET_BACKEND", "env").lower()
    SECRET_ENV: str = os.getenv("SECRET_ENV", "test")
    SECRET_HTTP_URL: str = os.getenv("SECRET_HTTP_URL", "")
    SECRET_HTTP_TOKEN: str = os.getenv("SECRET_HTTP_TOKEN", "")
    SECRET_TIMEOUT_SEC: float = float(os.getenv("SECRET_TIMEOUT_SEC", "5"))

    # External verification service
    VERIFICATION_BASE_URL: str = os.getenv(
        "VERIFICATION_BASE_URL", "https://verification.thirdparty.com/forms"
    ).rstrip("/")
    CALLBACK_URL: str = os.getenv("CALLBACK_URL", "https://api.example.com/webhook-callback")

    # ERP export
    EXPORT_DIR: str = os.getenv("EXPORT_DIR", "data/exports")
    EXPORT_MARK_CONCURRENCY: int = int(os.getenv("EXPORT_MARK_CONCURRENCY", "8"))
    EXPORT_LOCK_TTL_MS: int = int(os.getenv("EXPORT_LOCK_TTL_MS", "300000"))

    # Customer directory (loaded from the council CSV extracts)
    CUSTOMERS_KEY: str = os.getenv("CUSTOMERS_KEY", "customers:directory")

    CORS_ORIGINS: str = os.getenv(
        "CORS_ORIGINS", "https://forms.council-a.gov.uk,https://forms.council-b.gov.uk"
    )

    # Security & Privacy
    ENABLE_PII_REDACTION: bool = os.getenv("ENABLE_PII_REDACTION", "true").lower() == "true"
    ADMIN_RBAC_ENABLED: bool = os.getenv("ADMIN_RBAC_ENABLED", "true").lower() == "true"
    ADMIN_API_KEY: str = os.getenv("ADMIN_API_KEY", "")

settings = Settings()
