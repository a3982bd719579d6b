# ========================= farmguide/config.py =========================

import os
import logging

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger("config")

BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


def _resolve_path(env_name, default):
    value = os.getenv(env_name)
    if not value:
        return default
    return value if os.path.isabs(value) else os.path.join(BASE_DIR, value)


GROQ_API_KEY = os.getenv("GROQ_API_KEY", "")
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "")

GROQ_MODEL = os.getenv("GROQ_MODEL", "llama-3.3-70b-versatile")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.0-flash-lite")
WHISPER_MODEL = os.getenv("WHISPER_MODEL", "whisper-large-v3-turbo")

TEMPLATES_DIR = os.path.join(BASE_DIR, "templates")
STATIC_DIR = os.path.join(BASE_DIR, "static")
UPLOAD_DIR = _resolve_path("UPLOAD_DIR", os.path.join(BASE_DIR, "uploads"))
DATA_DIR = _resolve_path("DATA_DIR", os.path.join(BASE_DIR, "data"))
INVENTORY_PATH = _resolve_path("INVENTORY_PATH", os.path.join(DATA_DIR, "inventory.json"))

DEFAULT_LANGUAGE = os.getenv("DEFAULT_LANGUAGE", "hi")
CHAT_HISTORY_LIMIT = int(os.getenv("CHAT_HISTORY_LIMIT", "10"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Chat completion sampling
LLM_TEMPERATURE = 0.7
LLM_MAX_TOKENS = 1024
LLM_TOP_P = 0.95

# Vision sampling
VISION_TEMPERATURE = 0.4
VISION_MAX_OUTPUT_TOKENS = 1024

HEURISTIC_WIDTH = 160
IMAGE_CONTENT_PREFIX = "image/"

ENV_VARS = ["GROQ_API_KEY", "GEMINI_API_KEY"]


def check_env_variables():
    missing = [key for key in ENV_VARS if not os.getenv(key)]
    for key in missing:
        logger.warning("Missing the environment variable %s, fallback responses will be used", key)
    return missing
