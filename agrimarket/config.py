"""Application configuration for the Agrimarket dashboard service."""
import os
import logging
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

ENVIRONMENT = os.environ.get("ENVIRONMENT", "development")
FRONTEND_URL = os.environ.get("FRONTEND_URL", "http://localhost:5173")

# Session tokens are issued by the data gateway and signed with this secret
GATEWAY_JWT_SECRET = os.environ.get("GATEWAY_JWT_SECRET", "dev-gateway-secret-change-me")
GATEWAY_JWT_ALGORITHM = "HS256"
SESSION_TTL_HOURS = int(os.environ.get("SESSION_TTL_HOURS", "168"))

# Generative assistant
GEMINI_API_KEY = os.environ.get("GEMINI_API_KEY")
GEMINI_MODEL = os.environ.get("GEMINI_MODEL", "gemini-1.5-flash")
GEMINI_API_BASE = os.environ.get(
    "GEMINI_API_BASE", "https://generativelanguage.googleapis.com/v1beta"
)
CHAT_TEMPERATURE = float(os.environ.get("CHAT_TEMPERATURE", "0.7"))
CHAT_MAX_OUTPUT_TOKENS = int(os.environ.get("CHAT_MAX_OUTPUT_TOKENS", "1024"))
CHAT_TITLE_MAX_LENGTH = 50

# 0 writes the accumulated reply back on every delta
CHAT_WRITEBACK_MIN_CHARS = int(os.environ.get("CHAT_WRITEBACK_MIN_CHARS", "0"))

# Open-Meteo forecast cache
OPEN_METEO_GEOCODING_URL = "https://geocoding-api.open-meteo.com/v1/search"
OPEN_METEO_FORECAST_URL = "https://api.open-meteo.com/v1/forecast"
WEATHER_CACHE_PATH = os.environ.get("WEATHER_CACHE_PATH")
WEATHER_CACHE_TTL_SECONDS = 10 * 60


def check_assistant_config() -> bool:
    """Log a configuration fault when the assistant key is missing."""
    if not GEMINI_API_KEY:
        logger.error("GEMINI_API_KEY is not set; the AI assistant is disabled for this process")
        return False
    return True
