from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

BACKEND_DIR = Path(__file__).resolve().parents[2]
REPO_ROOT = BACKEND_DIR.parent
ENV_FILES = [REPO_ROOT / ".env", BACKEND_DIR / ".env"]

for env_path in ENV_FILES:
    if env_path.exists():
        load_dotenv(env_path, override=False)

MB = 1024 * 1024


class Settings(BaseSettings):
    model_config = SettingsConfigDict(case_sensitive=False, extra="allow")

    app_name: str = Field(default="Radio Check", alias="APP_NAME")
    app_env: str = Field(default="dev", alias="APP_ENV")

    database_url: str = Field(default="sqlite:///./radiocheck.db", alias="DATABASE_URL")

    openai_api_key: str = Field(default="", alias="OPENAI_API_KEY")
    openai_responses_model: str = Field(default="gpt-4o-mini", alias="OPENAI_RESPONSES_MODEL")
    matcher_temperature: float = Field(default=0.0, alias="MATCHER_TEMPERATURE")

    redis_url: str = Field(default="redis://localhost:6379/0", alias="REDIS_URL")
    redis_cache_ttl: int = Field(default=86400, alias="REDIS_CACHE_TTL")

    # Object storage
    s3_endpoint_url: Optional[str] = Field(default=None, alias="S3_ENDPOINT_URL")
    s3_bucket: str = Field(default="audios", alias="S3_BUCKET")
    s3_access_key: Optional[str] = Field(default=None, alias="S3_ACCESS_KEY")
    s3_secret_key: Optional[str] = Field(default=None, alias="S3_SECRET_KEY")
    s3_secure: Optional[bool] = Field(default=None, alias="S3_SECURE")
    s3_region: Optional[str] = Field(default=None, alias="S3_REGION")

    # Google Drive
    google_client_id: str = Field(default="", alias="GOOGLE_CLIENT_ID")
    google_client_secret: str = Field(default="", alias="GOOGLE_CLIENT_SECRET")
    google_refresh_token: str = Field(default="", alias="GOOGLE_REFRESH_TOKEN")
    drive_root_folder_id: Optional[str] = Field(default=None, alias="DRIVE_ROOT_FOLDER_ID")
    drive_max_depth: int = Field(default=5, alias="DRIVE_MAX_DEPTH")
    drive_request_delay_seconds: float = Field(default=0.2, alias="DRIVE_REQUEST_DELAY_SECONDS")
    drive_timeout_seconds: float = Field(default=60.0, alias="DRIVE_TIMEOUT_SECONDS")

    # RunPod transcription endpoint
    runpod_api_key: str = Field(default="", alias="RUNPOD_API_KEY")
    runpod_endpoint_id: str = Field(default="", alias="RUNPOD_ENDPOINT_ID")
    runpod_base_url: str = Field(default="https://api.runpod.ai/v2", alias="RUNPOD_BASE_URL")
    runpod_graphql_url: str = Field(default="https://api.runpod.io/graphql", alias="RUNPOD_GRAPHQL_URL")
    runpod_poll_interval_seconds: float = Field(default=1.0, alias="RUNPOD_POLL_INTERVAL_SECONDS")
    runpod_max_poll_attempts: int = Field(default=1200, alias="RUNPOD_MAX_POLL_ATTEMPTS")
    runpod_request_timeout_seconds: float = Field(default=120.0, alias="RUNPOD_REQUEST_TIMEOUT_SECONDS")
    compute_lock_resource: str = Field(default="runpod_whisper", alias="COMPUTE_LOCK_RESOURCE")
    compute_cost_per_second: float = Field(default=0.00019, alias="COMPUTE_COST_PER_SECOND")

    # Audio limits
    ffmpeg_bin: str = Field(default="ffmpeg", alias="FFMPEG_BIN")
    audio_max_payload_mb: float = Field(default=7.0, alias="AUDIO_MAX_PAYLOAD_MB")
    audio_passthrough_mb: float = Field(default=5.0, alias="AUDIO_PASSTHROUGH_MB")
    audio_bitrate_ladder_raw: str = Field(default="48k,32k,24k,16k", alias="AUDIO_BITRATE_LADDER")

    sync_interval_seconds: int = Field(default=900, alias="SYNC_INTERVAL_SECONDS")

    jwt_secret: str = Field(default="", alias="JWT_SECRET")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    jwt_expires_minutes: int = Field(default=60, alias="JWT_EXPIRES_MINUTES")

    backend_cors_origins_raw: str = Field(default="http://localhost:3000", alias="BACKEND_CORS_ORIGINS")

    @property
    def backend_cors_origins(self) -> List[str]:
        return [origin.strip() for origin in self.backend_cors_origins_raw.split(",") if origin.strip()]

    @property
    def audio_bitrate_ladder(self) -> List[str]:
        return [rate.strip() for rate in self.audio_bitrate_ladder_raw.split(",") if rate.strip()]

    @property
    def audio_max_payload_bytes(self) -> int:
        return int(self.audio_max_payload_mb * MB)

    @property
    def audio_passthrough_bytes(self) -> int:
        return int(self.audio_passthrough_mb * MB)


@lru_cache
def get_settings() -> Settings:
    settings = Settings()
    if not settings.openai_api_key:
        raise RuntimeError("OPENAI_API_KEY is required in environment or .env")
    if not settings.jwt_secret:
        raise RuntimeError("JWT_SECRET is required in environment or .env")
    return settings
