"""Application configuration with sensible defaults."""
import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


def _split_list(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


# Paths
BASE_DIR = Path(__file__).parent.parent
DATA_DIR = Path(os.getenv("DATA_DIR", str(BASE_DIR / "data")))

# Gemini configuration
GOOGLE_API_KEY = os.getenv("GOOGLE_API_KEY", "")
GEMINI_BASE_URL = os.getenv(
    "GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta"
)
CHAT_MODEL = os.getenv("CHAT_MODEL", "gemini-2.0-flash")
EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "text-embedding-004")
TEMPERATURE = float(os.getenv("TEMPERATURE", "0.7"))
MAX_OUTPUT_TOKENS = int(os.getenv("MAX_OUTPUT_TOKENS", "2048"))
LLM_TIMEOUT = float(os.getenv("LLM_TIMEOUT", "60.0"))

# Vector index
INDEX_NAME = os.getenv("INDEX_NAME", "campusbot")
INDEX_DIR = DATA_DIR / INDEX_NAME
DB_PATH = INDEX_DIR / "chunks.sqlite"

# Ingestion (character-based, matches the splitter)
CHUNK_SIZE = int(os.getenv("CHUNK_SIZE", "1000"))
CHUNK_OVERLAP = int(os.getenv("CHUNK_OVERLAP", "200"))
SITEMAP_URL = os.getenv("SITEMAP_URL", "https://mgmits.ac.in/post-sitemap2.xml")
WEBSITE_URLS = _split_list(os.getenv(
    "WEBSITE_URLS",
    "https://mgmits.ac.in/b-tech-admissions-2021/,"
    "https://mgmits.ac.in/mcaadmissions2022/,"
    "https://mgmits.ac.in/m-tech-admissions-2023/,"
    "https://mgmits.ac.in/contact-us/",
))
LOADER_TIMEOUT = float(os.getenv("LOADER_TIMEOUT", "30.0"))
LOADER_MAX_CONCURRENCY = int(os.getenv("LOADER_MAX_CONCURRENCY", "2"))
LOADER_USER_AGENT = os.getenv("LOADER_USER_AGENT", "Mozilla/5.0 (compatible; CampusBot/1.0)")
EMBED_BATCH_SIZE = int(os.getenv("EMBED_BATCH_SIZE", "50"))
DEFAULT_PAGE_TITLE = os.getenv("DEFAULT_PAGE_TITLE", "MITS Page")

# Retrieval
RETRIEVAL_TOP_K = int(os.getenv("RETRIEVAL_TOP_K", "5"))

# Re-ranking trigger terms
LEADERSHIP_TERMS = _split_list(
    os.getenv("LEADERSHIP_TERMS", "principal,vice principal,dean,director,head")
)

# Context assembly; 0 disables the cap
MAX_CONTEXT_CHARS = int(os.getenv("MAX_CONTEXT_CHARS", "0"))

# Assistant persona
INSTITUTION_NAME = os.getenv("INSTITUTION_NAME", "Muthoot Institute of Technology & Science")
INSTITUTION_SHORT_NAME = os.getenv("INSTITUTION_SHORT_NAME", "MITS")
INSTITUTION_WEBSITE = os.getenv("INSTITUTION_WEBSITE", "www.mgits.ac.in")

# Server
HOST = os.getenv("HOST", "0.0.0.0")
BASE_PORT = int(os.getenv("BASE_PORT", "5000"))
MAX_PORT_TRIES = int(os.getenv("MAX_PORT_TRIES", "10"))
ACTIVE_PORT_FILE = Path(os.getenv("ACTIVE_PORT_FILE", "active-port.json"))
CORS_ALLOW_ORIGINS = _split_list(os.getenv("CORS_ALLOW_ORIGINS", "*"))

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
