from __future__ import annotations

from pathlib import Path

APP_NAME = "ghostwriter"
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 1010

PACKAGE_DIR = Path(__file__).resolve().parent
PUBLIC_DIR = PACKAGE_DIR / "public"
INDEX_FILE_NAME = "index.html"

REFERENCE_FILE_NAME = "lyrics.txt"
REFERENCE_MAX_CHARS = 14000
REFERENCE_PREVIEW_CHARS = 1200

MAX_PROMPT_CHARS = 2000
MAX_LYRICS_CHARS = 9000
MAX_BODY_BYTES = 64 * 1024

DEFAULT_CREATIVITY = 100
MIN_CREATIVITY = 0
MAX_CREATIVITY = 100
STRICT_CREATIVITY_THRESHOLD = 85

STRICT_TEMPERATURE = 0.35
STRICT_TOP_P = 0.90
BASE_TEMPERATURE = 0.65
TEMPERATURE_SPAN = 0.55
MIN_TEMPERATURE = 0.2
MAX_TEMPERATURE = 1.3
BASE_TOP_P = 0.92
TOP_P_SPAN = 0.06
MIN_TOP_P = 0.7
MAX_TOP_P = 0.99
MIN_NEW_WORD_PERCENT = 6
NEW_WORD_PERCENT_DIVISOR = 6

SENTINEL_OUTPUT = "..."

GEN_TIMEOUT_SEC = 25.0
HTTP_CONNECT_TIMEOUT_SEC = 5.0
DISCONNECT_POLL_SEC = 0.5

PROVIDER_GEMINI = "gemini"
PROVIDER_OPENROUTER = "openrouter"
PROVIDER_OLLAMA = "ollama"
PROVIDER_LMSTUDIO = "lmstudio"
SUPPORTED_PROVIDERS = (PROVIDER_GEMINI, PROVIDER_OPENROUTER, PROVIDER_OLLAMA, PROVIDER_LMSTUDIO)
KEYED_PROVIDERS = (PROVIDER_GEMINI, PROVIDER_OPENROUTER)

DEFAULT_PROVIDER = PROVIDER_GEMINI
DEFAULT_MODEL_NAME = "gemini-3-pro-preview"
DEFAULT_GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_OLLAMA_BASE_URL = "http://localhost:11434"
DEFAULT_LMSTUDIO_BASE_URL = "http://localhost:1234/v1"
LOCAL_HOSTS = ("localhost", "127.0.0.1", "::1")

API_RATE_LIMIT = "30/minute"
GENERATION_RATE_LIMIT = "10/minute"
API_RATE_LIMIT_SCOPE = "api"

LOG_PREVIEW_CHARS = 300
UNKNOWN_WORDS_LOG_SAMPLE = 12
