"""Configuration management for the Book RAG comparison backend."""
import os
import logging
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# API Keys
GROQ_API_KEY = os.getenv("GROQ_API_KEY")
EMBEDDING_API_KEY = os.getenv("EMBEDDING_API_KEY")
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_KEY = os.getenv("SUPABASE_KEY")

# Provider endpoints
EMBEDDING_API_URL = os.getenv("EMBEDDING_API_URL", "https://api.openai.com/v1/embeddings")

# Server Configuration
PORT = int(os.getenv("PORT", "8000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# CORS Configuration
CORS_ORIGINS = os.getenv(
    "CORS_ORIGINS",
    "http://localhost:3000,http://localhost:5173"
).split(",")

# Model Configuration
EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "text-embedding-ada-002")
COMPLETION_MODEL = os.getenv("COMPLETION_MODEL", "llama-3.3-70b-versatile")
COMPLETION_MAX_TOKENS = int(os.getenv("COMPLETION_MAX_TOKENS", "800"))
EMBEDDING_TIMEOUT = float(os.getenv("EMBEDDING_TIMEOUT", "60"))

# Chunking Configuration
DEFAULT_CHUNK_SIZE = 1000  # characters (recursive) or words (fixed)
DEFAULT_OVERLAP = 200
DEFAULT_BATCH_SIZE = 8  # concurrent embedding requests per indexing run

# Retrieval Configuration
DEFAULT_TOP_K = 5

# Logging Configuration
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
