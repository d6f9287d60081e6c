"""Configuration and environment variables."""
import os
from dotenv import load_dotenv

load_dotenv()

# Gmail
GMAIL_TOKEN_FILE = os.getenv("GMAIL_TOKEN_FILE", "gmail_token.json")
GMAIL_CREDS_FILE = os.getenv("GMAIL_CREDS_FILE", "credentials.json")
GMAIL_SCOPES = [
    "https://www.googleapis.com/auth/gmail.modify",
    "https://www.googleapis.com/auth/gmail.labels",
    "https://www.googleapis.com/auth/gmail.send",
]

# LM Studio (any OpenAI-compatible endpoint works)
LM_BASE = os.getenv("LM_BASE", "http://127.0.0.1:1234/v1")
LM_MODEL = os.getenv("LM_MODEL", "llama-3.1-8b-instruct")
LM_TIMEOUT = float(os.getenv("LM_TIMEOUT", "120"))

# Polling
POLL_INTERVAL_MS = int(os.getenv("POLL_INTERVAL_MS", "10000"))
MAX_BATCH_SIZE = 50
TRIAGE_BATCH_SIZE = max(1, min(int(os.getenv("TRIAGE_BATCH_SIZE", "1")), MAX_BATCH_SIZE))

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
