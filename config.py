import os

from dotenv import load_dotenv

load_dotenv()

# MongoDB connection
DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")

# HTTP server
PORT = int(os.getenv("PORT", "8000"))
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Query limits
SCANNER_EVENT_LIMIT = 20  # soonest-starting events offered to the scanner
EVENT_LOG_LIMIT = 50  # most recent check-ins per event
