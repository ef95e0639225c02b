import os

from dotenv import load_dotenv

APP_NAME = "Food Calorie Counter"

load_dotenv()


def _flag(name, default="0"):
    return os.getenv(name, default).strip().lower() not in ("0", "false", "no", "")


# ---------------- Settings ----------------
VENICE_API_KEY = os.getenv("VENICE_API_KEY", "")
VENICE_BASE_URL = os.getenv("VENICE_BASE_URL", "https://api.venice.ai/api/v1")
VENICE_VISION_MODEL = os.getenv("VENICE_VISION_MODEL", "mistral-31-24b")
VENICE_VISION_MODEL_FALLBACK = os.getenv("VENICE_VISION_MODEL_FALLBACK", "qwen-2.5-vl")
VENICE_TEXT_MODEL = os.getenv("VENICE_TEXT_MODEL", "qwen3-235b")
VENICE_TIMEOUT = 300.0
VENICE_MAX_RETRIES = 2
VENICE_TEMPERATURE = 0.6

GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-1.5-flash")
MINIMAX_API_KEY = os.getenv("MINIMAX_API_KEY", "")
MINIMAX_MODEL = os.getenv("MINIMAX_MODEL", "abab6.5-chat")
GROK_API_KEY = os.getenv("GROK_API_KEY", "")
GROK_MODEL = os.getenv("GROK_MODEL", "grok-41-fast")

# Text models offered for the second stage
VENICE_TEXT_MODELS = [
    {
        "id": "qwen3-235b",
        "label": "Venice Large 1.1",
        "tagline": "Fast, high-accuracy macros with reasoning disabled for speed.",
        "badge": "Fast response",
        "reasoning_effort": None,
    },
    {
        "id": "qwen-2.5-qwq-32b",
        "label": "Venice Reasoning",
        "tagline": "Deep insights with structured explanations.",
        "badge": "Deep insights",
        "reasoning_effort": "medium",
    },
]

LANGUAGES = ("english", "french")
MODES = ("two_stage", "single_stage")

SECRET_KEY = os.getenv("SECRET_KEY", "change-this-in-production")
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///app.db")
UPLOAD_FOLDER = os.getenv("UPLOAD_FOLDER", "static/uploads")
MAX_CONTENT_LENGTH = 10 * 1024 * 1024

# Image preprocessing
MAX_IMAGE_SIDE = 800
JPEG_QUALITY = 85
ALLOWED_EXT = {"jpg", "jpeg", "png", "webp", "bmp", "gif"}

# Demo
DEMO_MODE = _flag("DEMO_MODE")
FALLBACK_TO_DEMO_ON_QUOTA = _flag("FALLBACK_TO_DEMO_ON_QUOTA", "1")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
# ------------------------------------------
