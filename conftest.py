import os

# Load .env.test for tests if present; explicit env vars still win.
from dotenv import load_dotenv

env_test_path = os.path.join(os.path.dirname(__file__), ".env.test")
if os.path.exists(env_test_path):
    load_dotenv(env_test_path, override=False)

# Settings are read at import time by libs.db.config, so these must be set
# before any service module is imported.
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test")
os.environ.setdefault("STRIPE_CLIENT_ID", "ca_test")
os.environ["STRIPE_SECRET_KEY"] = ""

from libs.common.config import get_settings  # noqa: E402

# Clear cached settings to reload with the test env vars
get_settings.cache_clear()
