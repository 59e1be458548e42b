from pydantic_settings import BaseSettings


class Config(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str  # Must point at a replica set, transactions are required
    database_timeout_ms: int = 10_000  # Client-side deadline for every MongoDB operation
    host: str = "127.0.0.1"
    port: int = 3000
    debug: bool = False
    cors_origins: list[str] = []
    # Access token signing
    jwt_secret: str
    jwt_issuer: str
    session_ttl_days: int = 365  # Sliding expiry of a signed session
    otp_ttl_minutes: int = 3
    # Mail delivery (logged instead of sent when smtp_host is empty)
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    # True: plain connection upgraded with STARTTLS (port 587). False: implicit TLS via SMTP_SSL (port 465).
    # There is no unencrypted mode.
    smtp_starttls: bool = True
    mail_sender: str = ""
    app_name: str = "Gatekeep"
    # OAuth providers
    oauth_timeout_seconds: float = 10.0
    google_userinfo_url: str = "https://www.googleapis.com/oauth2/v3/userinfo"
    google_tokeninfo_url: str = "https://oauth2.googleapis.com/tokeninfo"
    kakao_token_url: str = "https://kauth.kakao.com/oauth/token"  # noqa: S105
    kakao_client_id: str = ""
    kakao_client_secret: str = ""
    # Uploaded files
    files_path: str = "files"  # Directory the uploaded files are written to
    files_base_url: str = "http://127.0.0.1:3000/api/v1/files"  # Public URL prefix returned after upload
    max_upload_bytes: int = 100 * 1024 * 1024

    model_config = {
        "env_file": [".env"],
        "env_prefix": "GATEKEEP_",
        "extra": "ignore",
    }
