import os

# ---- Config knobs (env overrideable) ----

def _float_env(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except (TypeError, ValueError):
        return default

def _int_env(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except (TypeError, ValueError):
        return default

GEMINI_API_KEY = (os.getenv("GEMINI_API_KEY") or os.getenv("NEXT_PUBLIC_GEMINI_API_KEY") or "").strip()
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-1.5-flash").strip()
GEMINI_API_BASE = os.getenv("GEMINI_API_BASE", "https://generativelanguage.googleapis.com/v1").rstrip("/")

FORMULA_PROVIDER = os.getenv("FORMULA_PROVIDER", "gemini").strip().lower()
OPENAI_API_KEY = (os.getenv("OPENAI_API_KEY") or "").strip()
DEFAULT_OPENAI_MODEL = os.getenv("DEFAULT_OPENAI_MODEL", "gpt-4o-mini")

LLM_TIMEOUT_SECS = _float_env("LLM_TIMEOUT_SECS", 60.0)
DEMO_DELAY_SECONDS = _float_env("DEMO_DELAY_SECONDS", 3.0)
HANDOFF_TTL_SECONDS = _int_env("HANDOFF_TTL_SECONDS", 600)
MAX_DESCRIPTION_CHARS = _int_env("MAX_DESCRIPTION_CHARS", 2000)

PLACEHOLDER_IMAGE_URL = os.getenv(
    "PLACEHOLDER_IMAGE_URL",
    "https://cdn.shopify.com/s/files/1/0533/2089/files/placeholder-images-image_large.png?v=1530129081",
)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
