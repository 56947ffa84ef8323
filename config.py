"""
Central configuration for the papeterie back-office tools.

Backend credentials, the optional Groq key and logging level come from the
environment (a local .env file is loaded first). Static limits for uploads
and recommendations live here too so the pipelines and the UI agree on them.
"""

import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Hosted backend (REST tables, remote functions, storage)
BACKEND_URL = os.getenv("BACKEND_URL", "").rstrip("/")
BACKEND_ANON_KEY = os.getenv("BACKEND_ANON_KEY", "")
BACKEND_ACCESS_TOKEN = os.getenv("BACKEND_ACCESS_TOKEN", "")
BACKEND_USER_ID = os.getenv("BACKEND_USER_ID", "")
REQUEST_TIMEOUT_SECONDS = float(os.getenv("REQUEST_TIMEOUT_SECONDS", "30"))

# AI column detection
GROQ_API_KEY = os.getenv("GROQ_API_KEY")
GROQ_MODEL = os.getenv("GROQ_MODEL", "meta-llama/llama-4-scout-17b-16e-instruct")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Supplier pricing import
PRICING_EXTENSIONS = {
    "csv": [".csv", ".txt"],
    "xml": [".xml"],
    "json": [".json"],
}
PRICING_PREVIEW_ROWS = 5

# School list copilot
MAX_SCHOOL_LIST_SIZE_MB = 20
SCHOOL_LIST_EXTENSIONS = [
    ".pdf",
    ".jpg",
    ".jpeg",
    ".png",
    ".webp",
    ".txt",
    ".csv",
    ".xlsx",
    ".xls",
]
SCHOOL_LIST_BUCKET = "school-lists"

# Recommendations
PRODUCT_RECO_LIMIT = 8
CART_RECO_LIMIT = 4
RECO_STATS_DAYS = 30
