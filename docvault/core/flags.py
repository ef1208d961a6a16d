"""
Central feature flags. One file controls every external dependency.

Set via environment variables (prefix FF_) or .env file.
When a flag is OFF, the system uses a local fallback. Nothing crashes.
"""

from functools import lru_cache
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class FeatureFlags(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Auth ─────────────────────────────────────────────────────────
    use_auth0: bool = Field(default=True, alias="FF_USE_AUTH0")
    # ON  → JWT validated via Auth0 JWKS. Needs AUTH0_DOMAIN, AUTH0_AUDIENCE.
    # OFF → Dev principal "dev" injected. No token needed.

    # ── Storage ──────────────────────────────────────────────────────
    use_s3: bool = Field(default=True, alias="FF_USE_S3")
    # ON  → Uploaded bytes go to AWS S3. Needs AWS creds + S3_BUCKET_NAME.
    # OFF → Bytes saved under STORAGE_PATH on the local filesystem.

    # ── Cache / Realtime ─────────────────────────────────────────────
    use_redis: bool = Field(default=True, alias="FF_USE_REDIS")
    # ON  → Document lookups cached in Redis, indexing events published.
    #       Needs REDIS_URL.
    # OFF → In-process TTL cache. Events silently skipped.


@lru_cache
def get_flags() -> FeatureFlags:
    return FeatureFlags()
