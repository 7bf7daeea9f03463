"""Configuration management for ChatRelay backend."""
import os
import logging
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Generation service endpoints
BALDR_URL = os.getenv("BALDR_URL", "http://localhost:8000")
BALDR_SDXL_URL = os.getenv("BALDR_SDXL_URL", BALDR_URL)

# Google OAuth2
GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID")
GOOGLE_CLIENT_SECRET = os.getenv("GOOGLE_CLIENT_SECRET")
GOOGLE_REDIRECT_URI = os.getenv("GOOGLE_REDIRECT_URI")
GOOGLE_TOKEN_URL = os.getenv("GOOGLE_TOKEN_URL", "https://oauth2.googleapis.com/token")

# Record store
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_KEY = os.getenv("SUPABASE_KEY")
MESSAGES_TABLE = os.getenv("MESSAGES_TABLE", "messages")

# Server Configuration
PORT = int(os.getenv("PORT", "8081"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "json")

# CORS Configuration
CORS_ORIGINS = os.getenv(
    "CORS_ORIGINS",
    "http://localhost:3000"
).split(",")

# Deadlines (seconds)
STORE_TIMEOUT_SECONDS = float(os.getenv("STORE_TIMEOUT_SECONDS", "5"))
GENERATION_TIMEOUT_SECONDS = float(os.getenv("GENERATION_TIMEOUT_SECONDS", "60"))
AUTH_TIMEOUT_SECONDS = float(os.getenv("AUTH_TIMEOUT_SECONDS", "10"))

# Rows per record store read; PostgREST caps a single response at max-rows (1000 by default)
STORE_PAGE_SIZE = int(os.getenv("STORE_PAGE_SIZE", "1000"))

# History decoding: "skip" drops unparsable records, "fail" aborts the read
DECODE_POLICY = os.getenv("DECODE_POLICY", "skip")

# Per-conversation serialization of chat turns
SERIALIZE_CONVERSATIONS = os.getenv("SERIALIZE_CONVERSATIONS", "true").lower() in {"1", "true", "yes"}
CONVERSATION_LOCK_TIMEOUT_SECONDS = float(os.getenv("CONVERSATION_LOCK_TIMEOUT_SECONDS", "10"))

# Fallback logging until setup_logging() installs the structured handler
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
