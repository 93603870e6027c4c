"""Settings loaded from environment variables (+ optional .env)."""
import os

from dotenv import load_dotenv

load_dotenv()

ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY")
ANTHROPIC_MODEL = os.getenv("ANTHROPIC_MODEL", "claude-sonnet-4-5")

# Hard wall-clock limit for a single model call, in seconds
AI_TIMEOUT_SECONDS = float(os.getenv("AI_TIMEOUT_SECONDS", "30"))

DATABASE_PATH = os.getenv("DATABASE_PATH", "sinky.db")

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
    if origin.strip()
]

# Largest request body the API accepts, in bytes
MAX_BODY_BYTES = 10 * 1024
