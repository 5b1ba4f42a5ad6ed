import os
# Upstream ERP (single-tenant GO!Manage / PASOE instance)
GOMANAGE_BASE_URL = os.getenv("GOMANAGE_BASE_URL", "http://buyled.clonico.es:8181").rstrip("/")
GOMANAGE_USERNAME = os.getenv("GOMANAGE_USERNAME", "distri")
GOMANAGE_PASSWORD = os.getenv("GOMANAGE_PASSWORD", "GOtmt%")

GOMANAGE_LOGIN_PATH = os.getenv("GOMANAGE_LOGIN_PATH", "/gomanage/static/auth/j_spring_security_check")
GOMANAGE_LOGOUT_PATH = os.getenv("GOMANAGE_LOGOUT_PATH", "/gomanage/static/auth/j_spring_security_logout")
GOMANAGE_GRAPHQL_PATH = os.getenv("GOMANAGE_GRAPHQL_PATH", "/gomanage/web/data/graphql")
GOMANAGE_LANDING_PATH = os.getenv("GOMANAGE_LANDING_PATH", "/gomanage")

GOMANAGE_USERNAME_FIELD = os.getenv("GOMANAGE_USERNAME_FIELD", "j_username")
GOMANAGE_PASSWORD_FIELD = os.getenv("GOMANAGE_PASSWORD_FIELD", "j_password")
GOMANAGE_COOKIE_NAMES = tuple(
    n.strip() for n in os.getenv("GOMANAGE_COOKIE_NAMES", "JSESSIONID").split(",") if n.strip()
)
GOMANAGE_TOKEN_HEADER = os.getenv("GOMANAGE_TOKEN_HEADER", "Cookie")

# Timeouts / retries (seconds)
GOMANAGE_TIMEOUT = float(os.getenv("GOMANAGE_TIMEOUT", "15"))
GOMANAGE_PROBE_TIMEOUT = float(os.getenv("GOMANAGE_PROBE_TIMEOUT", "5"))
GOMANAGE_LOGIN_ATTEMPTS = int(os.getenv("GOMANAGE_LOGIN_ATTEMPTS", "3"))
GOMANAGE_RETRY_BASE_DELAY = float(os.getenv("GOMANAGE_RETRY_BASE_DELAY", "1.0"))

# Session cache
SESSION_TTL_SECONDS = int(os.getenv("SESSION_TTL_SECONDS", "1800"))
SESSION_IDLE_SECONDS = int(os.getenv("SESSION_IDLE_SECONDS", "1800"))
DEFAULT_SESSION_KEY = os.getenv("DEFAULT_SESSION_KEY", "default")

# Upstream schema (GraphQL documents, nesting paths, REST list paths)
GOMANAGE_SCHEMA_PATH = os.getenv("GOMANAGE_SCHEMA_PATH", "")

# API
API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("API_PORT", "8000"))
CORS_ALLOW_ORIGINS = [o.strip() for o in os.getenv("CORS_ALLOW_ORIGINS", "*").split(",") if o.strip()]


def _truthy(v: str) -> bool:
    return str(v).strip().lower() in ("1","true","yes","y","on")

DEV_MODE = _truthy(os.getenv("DEV_MODE", "1"))
