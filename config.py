import os
from dataclasses import dataclass
from typing import Optional
from dotenv import load_dotenv

load_dotenv()

@dataclass
class Settings:
    # API settings
    api_host: str = os.getenv("API_HOST", "127.0.0.1")
    api_port: int = int(os.getenv("API_PORT", "8000"))

    # Database settings
    database_file: str = os.getenv("LIBRARY_DB_FILE", "database.db")

    # Google Books API settings
    google_books_api_key: Optional[str] = os.getenv("GOOGLE_BOOKS_API_KEY")
    google_books_base_url: str = os.getenv("GOOGLE_BOOKS_BASE_URL", "https://www.googleapis.com/books/v1")
    google_books_timeout: float = float(os.getenv("GOOGLE_BOOKS_TIMEOUT", "10"))
    google_books_max_results: int = int(os.getenv("GOOGLE_BOOKS_MAX_RESULTS", "10"))

    # Reading progress: "latest" follows the most recent session's end page,
    # "high_water" never moves lastReadPage backwards.
    progress_policy: str = os.getenv("PROGRESS_POLICY", "latest").lower()

    # Application settings
    app_name: str = os.getenv("APP_NAME", "Haru Hanjul")
    app_version: str = os.getenv("APP_VERSION", "1.0.0")
    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()
    debug: bool = os.getenv("DEBUG", "False").lower() in ("true", "1", "yes")


settings = Settings()
