import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# ============================================================================#
# DIAGNOSTIC SERVICE (Plant.id health assessment)
# ============================================================================#
PLANT_ID_API_KEY = os.getenv("PLANT_ID_API_KEY") or os.getenv("CROP_HEALTH_API_KEY")
PLANT_ID_API_URL = os.getenv("PLANT_ID_API_URL", "https://api.plant.id/v2/health_assessment")

# ============================================================================#
# TREATMENT GENERATION SERVICE
# ============================================================================#
# GEMINI or FIREWORKS
TREATMENT_BACKEND = os.getenv("TREATMENT_BACKEND", "GEMINI").upper()

GOOGLE_API_KEY = os.getenv("GOOGLE_API_KEY")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")

FIREWORKS_API_KEY = os.getenv("FIREWORKS_API_KEY")
FIREWORKS_API_URL = os.getenv("FIREWORKS_API_URL", "https://api.fireworks.ai/inference/v1/chat/completions")
FIREWORKS_MODEL = os.getenv("FIREWORKS_MODEL", "accounts/fireworks/models/llama-v3p1-70b-instruct")

# ============================================================================#
# HTTP / UPLOADS
# ============================================================================#
HTTP_TIMEOUT = float(os.getenv("HTTP_TIMEOUT", "60"))
MAX_FILE_SIZE_MB = int(os.getenv("MAX_FILE_SIZE_MB", "10"))
MAX_FILE_SIZE_BYTES = MAX_FILE_SIZE_MB * 1024 * 1024
ALLOWED_CONTENT_TYPES = ["image/jpeg", "image/png", "image/webp"]
MAX_IMAGE_PIXELS = int(os.getenv("MAX_IMAGE_PIXELS", "40000000"))  # ~40 megapixels

# ============================================================================#
# SESSIONS (in memory)
# ============================================================================#
SESSION_TTL = int(os.getenv("SESSION_TTL", "1800"))  # 30 minutes idle
MAX_SESSIONS = int(os.getenv("MAX_SESSIONS", "500"))

# ============================================================================#
# SERVER
# ============================================================================#
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
HOST = os.getenv("HOST", "127.0.0.1")
PORT = int(os.getenv("PORT", "8000"))
