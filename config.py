import os
from dotenv import load_dotenv

# Load .env file
load_dotenv()


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    # --- MongoDB Settings ---
    MONGO_URI = os.getenv("MONGO_URI")
    DB_NAME = os.getenv("DB_NAME", "workhub")

    # --- Environment ---
    ENV = os.getenv("ENV", "development") # "development", "testing" or "production"
    FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")

    # --- Security Settings ---
    # In production, ALWAYS set this in .env. Never use the fallback.
    SECRET_KEY = os.getenv("SECRET_KEY")
    if ENV == "production" and not SECRET_KEY:
        raise ValueError("SECRET_KEY environment variable is mandatory in production!")
    elif not SECRET_KEY:
        SECRET_KEY = "dev_secret_key_change_in_prod"
    ALGORITHM = "HS256"

    # --- Web Push (VAPID) ---
    VAPID_PUBLIC_KEY = os.getenv("VAPID_PUBLIC_KEY")
    VAPID_PRIVATE_KEY = os.getenv("VAPID_PRIVATE_KEY")
    VAPID_CLAIM_EMAIL = os.getenv("VAPID_CLAIM_EMAIL")

    # --- Periodic checkers ---
    SCHEDULERS_ENABLED = _env_flag("SCHEDULERS_ENABLED", ENV != "testing")
    CHECK_INTERVAL_HOURS = float(os.getenv("CHECK_INTERVAL_HOURS", "6"))
    DEADLINE_CHECK_DELAY_SECONDS = float(os.getenv("DEADLINE_CHECK_DELAY_SECONDS", "10"))
    FOLLOWUP_CHECK_DELAY_SECONDS = float(os.getenv("FOLLOWUP_CHECK_DELAY_SECONDS", "15"))

config = Config()
