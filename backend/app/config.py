"""Application configuration. Loads from environment and .env file."""
import logging
import os
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent
# Load .env from cwd, then backend/.env, then project root .env
load_dotenv()
load_dotenv(BASE_DIR / ".env")
load_dotenv(BASE_DIR.parent / ".env")

# Staging area for uploaded files (override with env)
UPLOAD_DIR = Path(os.getenv("UPLOAD_DIR", str(BASE_DIR / "uploads")))
UPLOAD_DIR.mkdir(parents=True, exist_ok=True)

# Output formats accepted by /convert
SUPPORTED_FORMATS = ["jpg", "jpeg", "png", "webp", "tiff", "avif"]
# Inputs accepted by every operation (extension or declared MIME type)
INPUT_EXTENSIONS = {"jpeg", "jpg", "png", "webp", "gif", "tiff", "avif"}
INPUT_MIME_TYPES = {
    "image/jpeg",
    "image/png",
    "image/webp",
    "image/gif",
    "image/tiff",
    "image/avif",
}

# Limits (env)
MAX_FILE_SIZE_MB = int(os.getenv("MAX_FILE_SIZE_MB", "50"))
MAX_FILE_SIZE_BYTES = MAX_FILE_SIZE_MB * 1024 * 1024
MAX_FILES_PER_REQUEST = int(os.getenv("MAX_FILES_PER_REQUEST", "20"))
# Decoded input ceiling and requested resize ceiling, in pixels per axis
MAX_INPUT_DIMENSION = int(os.getenv("MAX_INPUT_DIMENSION", "20000"))
MAX_OUTPUT_DIMENSION = int(os.getenv("MAX_OUTPUT_DIMENSION", "10000"))

# Encoder quality for resize output (convert uses maximum quality, compress uses the request percent)
DEFAULT_QUALITY = int(os.getenv("DEFAULT_QUALITY", "90"))

# Streaming
ZIP_COMPRESSION_LEVEL = int(os.getenv("ZIP_COMPRESSION_LEVEL", "6"))
STREAM_CHUNK_SIZE = int(os.getenv("STREAM_CHUNK_SIZE", str(64 * 1024)))
CACHE_CONTROL = "no-store, no-cache, must-revalidate"

# Concurrency
MAX_WORKERS = int(os.getenv("MAX_WORKERS", str(min(32, (os.cpu_count() or 4) + 4))))

# Server (for uvicorn)
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "3000"))
# CORS: comma-separated origins, e.g. "http://localhost:5173,http://127.0.0.1:5173"
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("converter")
