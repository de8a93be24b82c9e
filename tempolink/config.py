import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./tempolink.db")

# Redis (ARQ queue, rate limiting, geocode cache)
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379")

# Clerk Configuration
CLERK_JWKS_URL = os.getenv("CLERK_JWKS_URL")
CLERK_ISSUER = os.getenv("CLERK_ISSUER")
CLERK_SECRET_KEY = os.getenv("CLERK_SECRET_KEY")
CLERK_API_URL = os.getenv("CLERK_API_URL", "https://api.clerk.com/v1")
# Comma separated list of origins allowed to present session tokens (azp claim)
AUTHORIZED_PARTIES = [
    party.strip() for party in os.getenv("AUTHORIZED_PARTIES", "").split(",") if party.strip()
]

# Cloudflare R2 Configuration
R2_ACCOUNT_ID = os.getenv("R2_ACCOUNT_ID")
R2_ACCESS_KEY_ID = os.getenv("R2_ACCESS_KEY_ID")
R2_SECRET_ACCESS_KEY = os.getenv("R2_SECRET_ACCESS_KEY")
R2_BUCKET_NAME = os.getenv("R2_BUCKET_NAME", "tempolink")
# Public bucket domain; presigned URLs are used when unset
R2_PUBLIC_URL = os.getenv("R2_PUBLIC_URL")

# Frontend base URL for links in emails
APP_URL = os.getenv("APP_URL", "http://localhost:3000")

# Resend Email Configuration
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
RESEND_FROM_EMAIL = os.getenv("RESEND_FROM_EMAIL") or "onboarding@resend.dev"
RESEND_FROM_NAME = os.getenv("RESEND_FROM_NAME") or "TempoLink"
INVITE_TEMPLATE_ID = os.getenv("INVITE_TEMPLATE_ID", "teacher-invite-student")

# Nominatim requires an identifying User-Agent
NOMINATIM_URL = os.getenv("NOMINATIM_URL", "https://nominatim.openstreetmap.org/search")
NOMINATIM_USER_AGENT = os.getenv(
    "NOMINATIM_USER_AGENT", "TempoLink/1.0 (Contact: support@tempolink.com)"
)

# OpenAI (bio drafting)
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")

# CORS
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", APP_URL)
