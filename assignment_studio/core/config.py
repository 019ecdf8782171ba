"""
Configuration settings for the application
"""
import logging
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Together.ai API Configuration
# No default key: a missing credential must be reported before any LLM call
TOGETHER_AI_API_KEY = os.getenv("TOGETHER_AI_API_KEY") or None
TOGETHER_AI_API_URL = os.getenv("TOGETHER_AI_API_URL", "https://api.together.xyz/v1/chat/completions")

# Serverless chat models that work well for JSON output:
# - meta-llama/Meta-Llama-3.1-8B-Instruct-Turbo
# - mistralai/Mixtral-8x7B-Instruct-v0.1
# - Qwen/Qwen2.5-72B-Instruct
TOGETHER_AI_MODEL = os.getenv("TOGETHER_AI_MODEL", "meta-llama/Meta-Llama-3.1-8B-Instruct-Turbo")

LLM_TEMPERATURE = float(os.getenv("LLM_TEMPERATURE", "0.7"))
LLM_TIMEOUT_SECONDS = float(os.getenv("LLM_TIMEOUT_SECONDS", "120"))

# Max output tokens per request type
GENERATION_MAX_TOKENS = 3000
EVALUATION_MAX_TOKENS = 2000

# Server Configuration
SERVER_HOST = os.getenv("SERVER_HOST", "0.0.0.0")
SERVER_PORT = int(os.getenv("SERVER_PORT", "8000"))
CORS_ALLOW_ORIGINS = [
    origin.strip() for origin in os.getenv("CORS_ALLOW_ORIGINS", "*").split(",") if origin.strip()
]

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = LOG_LEVEL) -> None:
    """Set up root logging for the server process"""
    logging.basicConfig(level=level, format=LOG_FORMAT)
