from dotenv import load_dotenv
import os

load_dotenv()  # Loads variables from .env file


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """
    Manages application settings loaded from environment variables.
    """
    HEADLESS = _env_bool("SITECRAWL_HEADLESS", True)
    BROWSER_TYPE = os.getenv("SITECRAWL_BROWSER", "chromium")
    HTML_DIR = os.getenv("SITECRAWL_HTML_DIR", os.path.join(os.getcwd(), "crawler-html"))
    LOG_LEVEL = os.getenv("SITECRAWL_LOG_LEVEL", "INFO")
    LOG_FILE = os.getenv("SITECRAWL_LOG_FILE")


settings = Settings()
