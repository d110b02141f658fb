"""Application constants and configuration values."""

from core.config import APP_BASE_URL

# Database field lengths
MAX_STRING_LENGTH = 255
MAX_CLINIC_NAME_LENGTH = 120

# OAuth and authentication
GOOGLE_OAUTH_SCOPES = [
    "openid",
    "email",
    "profile",
    "https://www.googleapis.com/auth/calendar.events",
    "https://www.googleapis.com/auth/calendar",
]

# Database connection settings
DB_POOL_RECYCLE_SECONDS = 300  # 5 minutes

# CORS origins for development and production
_CORS_ORIGINS_RAW = [
    "http://localhost:3000",      # Next.js dev server
    APP_BASE_URL,
]

# Filter out None values and empty strings to avoid CORS errors
CORS_ORIGINS = [origin for origin in _CORS_ORIGINS_RAW if origin and origin.strip()]

# Signup verification
SIGNUP_CODE_TTL_MINUTES = 15
SIGNUP_RESEND_INTERVAL_SECONDS = 60
SIGNUP_MAX_VERIFY_ATTEMPTS = 5
SIGNUP_CODE_MIN = 100000
SIGNUP_CODE_MAX = 999999
SIGNUP_CODE_BCRYPT_ROUNDS = 8  # ~tens of ms per verify
PASSWORD_MIN_LENGTH = 8

# Password recovery
PASSWORD_RESET_TOKEN_BYTES = 24
PASSWORD_RESET_TTL_MINUTES = 60

# Invites
INVITE_TTL_DAYS = 7
DEFAULT_INVITE_ROLE = "member"
CLINIC_ADMIN_ROLE = "admin"
MIN_CLINIC_NAME_LENGTH = 2

# Clinics
SELF_SIGNUP_SUBSCRIPTION_STATUS = "pending_payment"
DEFAULT_SUBSCRIPTION_STATUS = "trial"
FALLBACK_CLINIC_NAME = "Tu Clínica"

# Monday-Friday 09:00-17:00, weekends closed
DEFAULT_CLINIC_SCHEDULE = {
    "monday": [{"start": "09:00", "end": "17:00"}],
    "tuesday": [{"start": "09:00", "end": "17:00"}],
    "wednesday": [{"start": "09:00", "end": "17:00"}],
    "thursday": [{"start": "09:00", "end": "17:00"}],
    "friday": [{"start": "09:00", "end": "17:00"}],
    "saturday": [],
    "sunday": [],
}

# Post-login routing
ONBOARDING_PATH = "/onboarding"
DASHBOARD_PATH = "/dashboard"

# Cleanup scheduler
CLEANUP_INTERVAL_MINUTES = 60
