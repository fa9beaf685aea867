"""Event Gallery Configuration."""

import secrets
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Server
    app_name: str = "Event Gallery"
    debug: bool = False
    log_level: str = "INFO"

    # Paths
    data_dir: Path = Path.home() / "gallery" / "data"
    storage_dir: Path = Path.home() / "gallery" / "objects"

    # Database
    db_path: Path = Path.home() / "gallery" / "data" / "gallery.db"
    database_url: str = ""  # overrides db_path when set

    # Object store
    storage_backend: str = "local"  # 'local' | 's3'
    s3_endpoint_url: Optional[str] = None
    s3_access_key: str = "minioadmin"
    s3_secret_key: str = "minioadmin"
    s3_region: str = "us-east-1"
    s3_bucket: str = "photos"
    s3_timeout_seconds: int = 10
    public_base_url: Optional[str] = None
    image_proxy_path: str = "/api/images"

    # Legacy JSON metadata record kept in the object store
    legacy_metadata_enabled: bool = True
    legacy_metadata_key: str = "events/metadata.json"

    # Snapshot cache
    cache_ttl_seconds: float = 300  # 5 minutes
    demo_fallback: bool = True

    # Uploads
    max_upload_bytes: int = 10 * 1024 * 1024  # 10 MiB
    allowed_content_types: list[str] = ["image/jpeg", "image/jpg", "image/png", "image/webp"]

    # Admin session
    jwt_secret: str = ""
    jwt_algorithm: str = "HS256"
    session_expire_minutes: int = 1440  # 24 hours
    session_cookie: str = "admin-session"
    admin_username: str = "admin"
    admin_password: str = "admin123"

    model_config = {"env_prefix": "GALLERY_"}

    @property
    def sqlalchemy_url(self) -> str:
        return self.database_url or f"sqlite:///{self.db_path}"

    def ensure_dirs(self) -> None:
        """Create all required directories."""
        for d in [self.data_dir, self.db_path.parent]:
            d.mkdir(parents=True, exist_ok=True)
        if self.storage_backend == "local":
            self.storage_dir.mkdir(parents=True, exist_ok=True)

    def ensure_secrets(self) -> None:
        """Generate the session secret if not set, persist it so sessions survive restarts."""
        if self.jwt_secret:
            return
        secrets_file = self.data_dir / ".secrets"
        saved = {}
        if secrets_file.exists():
            for line in secrets_file.read_text().strip().splitlines():
                if "=" in line:
                    k, v = line.split("=", 1)
                    saved[k.strip()] = v.strip()

        self.jwt_secret = saved.get("jwt_secret", "") or secrets.token_urlsafe(32)

        # Persist for next restart
        secrets_file.write_text(f"jwt_secret={self.jwt_secret}\n")


settings = Settings()
settings.ensure_dirs()
settings.ensure_secrets()
