import os
from pydantic import BaseModel
from typing import Optional


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


class Settings(BaseModel):
    """Environment-driven configuration for the upload gateway.

    Built once at process start with `Settings.from_env()` and handed to
    `create_app`. Defaults suit LocalStack-based development.
    """
    host: str = "0.0.0.0"
    port: int = 3000

    aws_access_key_id: str = "test"
    aws_secret_access_key: str = "test"
    aws_region: str = "us-east-1"
    aws_endpoint_url: Optional[str] = None
    bucket_name: str = "images"
    public_base_url: Optional[str] = None

    namespace: str = "users"
    upload_tag: str = "profileImages"
    upload_dir: str = "./uploads"
    upload_field_name: str = "profilePhotos"
    max_files: int = 5
    max_file_size: int = 10 * 1024 * 1024
    keep_temp_files: bool = False

    log_level: str = "INFO"
    log_json: bool = True

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "3000")),
            aws_access_key_id=os.getenv("AWS_ACCESS_KEY_ID", "test"),
            aws_secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY", "test"),
            aws_region=os.getenv("AWS_REGION", "us-east-1"),
            aws_endpoint_url=os.getenv("AWS_ENDPOINT_URL") or None,
            bucket_name=os.getenv("BUCKET_NAME", "images"),
            public_base_url=os.getenv("PUBLIC_BASE_URL") or None,
            namespace=os.getenv("IMAGE_NAMESPACE", "users"),
            upload_tag=os.getenv("IMAGE_TAG", "profileImages"),
            upload_dir=os.getenv("UPLOAD_DIR", "./uploads"),
            upload_field_name=os.getenv("UPLOAD_FIELD_NAME", "profilePhotos"),
            max_files=int(os.getenv("MAX_FILES", "5")),
            max_file_size=int(os.getenv("MAX_FILE_SIZE", str(10 * 1024 * 1024))),
            keep_temp_files=_env_bool("KEEP_TEMP_FILES"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_json=_env_bool("LOG_JSON", "true"),
        )
