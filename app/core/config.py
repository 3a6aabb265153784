"""Application configuration via environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or .env file."""
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Application
    app_name: str = "Photo Library"
    debug: bool = False

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    allowed_origins: str = "*"  # Comma-separated origins, or "*" for all

    # Database (use postgresql+psycopg://... in production)
    database_url: str = "sqlite:///./photo_library.db"

    # Google Drive OAuth client
    google_drive_client_id: str = ""
    google_drive_client_secret: str = ""
    google_drive_redirect_uri: str = ""

    # Drive storage
    drive_folder_name: str = "PhotoApp"
    drive_request_timeout_seconds: float = 30.0
    token_refresh_window_minutes: int = 5

    # Photo lifecycle policy
    upload_atomic: bool = True  # False keeps rows for files uploaded before a failure
    album_accepts_library_photos: bool = True
    max_upload_files: int = 10
    max_upload_bytes: int = 10 * 1024 * 1024

    # Background jobs (0 disables)
    reconcile_interval_minutes: int = 60
    reconcile_grace_minutes: int = 10
    token_refresh_interval_minutes: int = 5


settings = Settings()
