import os
from pathlib import Path

from .constants import DATA_DIR, DB_FILE_NAME

BASE_DIR = Path(__file__).resolve().parent
DATA_PATH = BASE_DIR / DATA_DIR
DB_PATH = Path(os.environ.get("SALES_DB_PATH", DATA_PATH / DB_FILE_NAME))

LOG_LEVEL = os.environ.get("SALES_LOG_LEVEL", "INFO").upper()

API_HOST = os.environ.get("SALES_API_HOST", "127.0.0.1")
API_PORT = int(os.environ.get("SALES_API_PORT", "8000"))
