from datetime import timedelta
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parent.parent.parent


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="LABSYNC_", env_file=".env", extra="ignore")

    database_url: str = f"sqlite:///{BASE_DIR}/labsync.db"

    # DEV ONLY default; set LABSYNC_SECRET_KEY in production.
    secret_key: str = "change-me-in-production"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60

    upload_dir: Path = BASE_DIR / "uploads"
    max_upload_bytes: int = 10 * 1024 * 1024

    log_level: str = "INFO"


settings = Settings()

DATABASE_URL = settings.database_url
SECRET_KEY = settings.secret_key
ALGORITHM = settings.algorithm
ACCESS_TOKEN_EXPIRE = timedelta(minutes=settings.access_token_expire_minutes)

UPLOAD_DIR = settings.upload_dir
MAX_UPLOAD_BYTES = settings.max_upload_bytes

# Accepted upload extensions for submission files and assignment PDFs
ALLOWED_SUBMISSION_EXTENSIONS = {
    ".pdf", ".doc", ".docx", ".txt", ".zip",
    ".md", ".json", ".xml", ".html", ".css", ".js", ".sql",
    ".py", ".java", ".c", ".cpp", ".cs", ".go", ".rs", ".rb", ".php",
}
ALLOWED_ASSIGNMENT_EXTENSIONS = {".pdf"}
