# societyhub/core/config.py
import os
from dotenv import load_dotenv

load_dotenv()

class Settings:
    FIREBASE_PROJECT_ID: str = os.getenv("FIREBASE_PROJECT_ID", "societyhub-app")
    FIREBASE_SERVICE_ACCOUNT_PATH: str = os.getenv(
        "FIREBASE_SERVICE_ACCOUNT_PATH",
        "firebase-service-account.json",
    )
    # Service account key as a JSON string; takes precedence over the file
    FIREBASE_CREDENTIALS_JSON: str = os.getenv("FIREBASE_CREDENTIALS_JSON", "")

    # Run against the in-process store instead of Firestore (local dev / tests)
    USE_MEMORY_STORE: bool = os.getenv("USE_MEMORY_STORE", "false").lower() == "true"

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    # Role assigned when the profile document is missing or unreadable
    DEFAULT_ROLE: str = os.getenv("DEFAULT_ROLE", "resident")

    # Maintenance billing
    BILL_DEFAULT_AMOUNT: int = int(os.getenv("BILL_DEFAULT_AMOUNT", "12000"))
    BILL_DUE_DAY: int = int(os.getenv("BILL_DUE_DAY", "10"))
    ENABLE_BILL_AUTOGEN: bool = os.getenv("ENABLE_BILL_AUTOGEN", "true").lower() == "true"
    BILL_AUTOGEN_INTERVAL_MINUTES: int = int(os.getenv("BILL_AUTOGEN_INTERVAL_MINUTES", "60"))

    # Documents are flagged "expiring" this many days ahead
    DOCUMENT_EXPIRY_WARNING_DAYS: int = int(os.getenv("DOCUMENT_EXPIRY_WARNING_DAYS", "30"))

    # Retry policy for recoverable store errors
    RETRY_MAX_ATTEMPTS: int = int(os.getenv("RETRY_MAX_ATTEMPTS", "3"))
    RETRY_BASE_DELAY: float = float(os.getenv("RETRY_BASE_DELAY", "1.0"))


settings = Settings()
