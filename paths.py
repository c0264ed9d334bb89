# paths.py

import os
from pathlib import Path

# Project root (this file lives in the root directory)
ROOT = Path(__file__).parent

# Directories inside the project
DATA_DIR = ROOT / "Data"

# Local object storage used when no hosted bucket is configured
UPLOAD_DIR = Path(os.getenv("STORAGE_DIR", str(DATA_DIR / "uploads")))

def upload_file(key: str) -> Path:
    return UPLOAD_DIR / key
