import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

APP_NAME = "IxiClinic Admin"
APP_VERSION = "1.0.0"

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./ixiclinic_admin.db")

# Firebase Configuration
FIREBASE_PROJECT_ID = os.getenv("FIREBASE_PROJECT_ID")
# Service account JSON; Application Default Credentials are used when unset
FIREBASE_CREDENTIALS_PATH = os.getenv("FIREBASE_CREDENTIALS_PATH")

# PayPal Configuration
PAYPAL_CLIENT_ID = os.getenv("PAYPAL_CLIENT_ID")
PAYPAL_CLIENT_SECRET = os.getenv("PAYPAL_CLIENT_SECRET")
# Sandbox is the default for safety
PAYPAL_SANDBOX = os.getenv("PAYPAL_SANDBOX", "true").lower() == "true"
PAYPAL_BASE_URL = (
    "https://api.sandbox.paypal.com" if PAYPAL_SANDBOX else "https://api.paypal.com"
)
PAYPAL_TIMEOUT = float(os.getenv("PAYPAL_TIMEOUT", "30"))
PAYPAL_WEBHOOK_ID = os.getenv("PAYPAL_WEBHOOK_ID")

# Optional integrations
GOOGLE_MAPS_API_KEY = os.getenv("GOOGLE_MAPS_API_KEY")
REDIS_ENABLED = os.getenv("REDIS_ENABLED", "true").lower() == "true"

# Comma separated list of emails granted the "admin" role without a custom claim
ADMIN_EMAILS = [
    email.strip().lower() for email in os.getenv("ADMIN_EMAILS", "").split(",") if email.strip()
]

SKIP_ENV_VALIDATION = os.getenv("SKIP_ENV_VALIDATION", "false").lower() == "true"

# Local plan name -> environment variable holding its PayPal plan ID
PAYPAL_PLAN_ENV_VARS = {
    # Personal Plans
    "personal-basic-monthly": "PAYPAL_PLAN_PERSONAL_BASIC_MONTHLY",
    "personal-basic-quarterly": "PAYPAL_PLAN_PERSONAL_BASIC_QUARTERLY",
    "personal-basic-annual": "PAYPAL_PLAN_PERSONAL_BASIC_ANNUAL",
    "personal-pro-monthly": "PAYPAL_PLAN_PERSONAL_PRO_MONTHLY",
    "personal-pro-quarterly": "PAYPAL_PLAN_PERSONAL_PRO_QUARTERLY",
    "personal-pro-annual": "PAYPAL_PLAN_PERSONAL_PRO_ANNUAL",
    # Clinic Plans
    "clinic-pro-monthly": "PAYPAL_PLAN_CLINIC_PRO_MONTHLY",
    "clinic-pro-quarterly": "PAYPAL_PLAN_CLINIC_PRO_QUARTERLY",
    "clinic-pro-annual": "PAYPAL_PLAN_CLINIC_PRO_ANNUAL",
    "clinic-enterprise-monthly": "PAYPAL_PLAN_CLINIC_ENTERPRISE_MONTHLY",
    "clinic-enterprise-quarterly": "PAYPAL_PLAN_CLINIC_ENTERPRISE_QUARTERLY",
    "clinic-enterprise-annual": "PAYPAL_PLAN_CLINIC_ENTERPRISE_ANNUAL",
    # Hospital Plans
    "hospital-enterprise-monthly": "PAYPAL_PLAN_HOSPITAL_ENTERPRISE_MONTHLY",
    "hospital-enterprise-quarterly": "PAYPAL_PLAN_HOSPITAL_ENTERPRISE_QUARTERLY",
    "hospital-enterprise-annual": "PAYPAL_PLAN_HOSPITAL_ENTERPRISE_ANNUAL",
}


def load_paypal_plan_mapping(env=None) -> dict[str, str]:
    """Build the local plan name -> PayPal plan ID mapping from the environment"""
    env = os.environ if env is None else env
    return {plan: (env.get(var) or "").strip() for plan, var in PAYPAL_PLAN_ENV_VARS.items()}


PAYPAL_PLAN_MAPPING = load_paypal_plan_mapping()

# Reverse mapping (PayPal plan ID -> local plan name)
LOCAL_PLAN_MAPPING = {paypal: local for local, paypal in PAYPAL_PLAN_MAPPING.items() if paypal}


def get_paypal_plan_id(local_plan_name: str):
    return PAYPAL_PLAN_MAPPING.get(local_plan_name) or None


def get_local_plan_name(paypal_plan_id: str):
    return LOCAL_PLAN_MAPPING.get(paypal_plan_id)


# CORS origins allowed to call the admin API
ALLOWED_ORIGINS = os.getenv(
    "ALLOWED_ORIGINS", "http://localhost:5173,http://localhost:3000"
).split(",")
