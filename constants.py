import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 3001))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", None)

CORS_ORIGINS = [origin.strip() for origin in os.getenv("CORS_ORIGIN", "*").split(",") if origin.strip()]

# Empty REDIS_HOST keeps chat history in process memory only
REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", 6379))
REDIS_PASSWORD = os.getenv("REDIS_PASSWORD", None)

CHAT_HISTORY_LIMIT = int(os.getenv("CHAT_HISTORY_LIMIT", 200))
CHAT_HISTORY_TTL = int(os.getenv("CHAT_HISTORY_TTL", 86400))
MEMORY_LOG_MAX_ROOMS = int(os.getenv("MEMORY_LOG_MAX_ROOMS", 500))

GOOGLE_API_KEY = os.getenv("GOOGLE_API_KEY", None)
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-1.5-flash")
GEMINI_API_BASE = os.getenv("GEMINI_API_BASE", "https://generativelanguage.googleapis.com/v1beta")
AI_REQUEST_TIMEOUT = float(os.getenv("AI_REQUEST_TIMEOUT", 15))
AI_RATE_LIMIT_MAX = int(os.getenv("AI_RATE_LIMIT_MAX", 5))
AI_RATE_LIMIT_WINDOW = float(os.getenv("AI_RATE_LIMIT_WINDOW", 60))
