"""
Application configuration.
All settings are loaded from environment variables.
Required variables: DATABASE_URL, REDIS_URL, CELERY_BROKER_URL, CELERY_RESULT_BACKEND, AUTH_SECRET_KEY.
"""
from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    IMPORTANT: Infrastructure credentials have no defaults - they MUST be set in .env file.
    External API keys default to empty and are checked when the API is actually called.
    """

    # ===========================================
    # APPLICATION
    # ===========================================
    app_env: str = "local"
    # CORS: comma-separated (e.g. http://localhost:3000,https://app.example.com). Empty = default list in code.
    cors_origins: str = ""

    # ===========================================
    # DATABASE (PostgreSQL)
    # ===========================================
    database_url: str  # Required, no default
    db_pool_size: int = 10
    db_max_overflow: int = 20
    db_pool_recycle_seconds: int = 1800
    db_connect_timeout_seconds: int = 5

    # ===========================================
    # REDIS & CELERY
    # ===========================================
    redis_url: str  # Required, no default
    celery_broker_url: str  # Required, no default
    celery_result_backend: str  # Required, no default

    # ===========================================
    # AUTH
    # ===========================================
    auth_secret_key: str  # Required, no default
    auth_token_max_age_seconds: int = 7 * 24 * 3600
    # Shared key for POST /internal/render. None = endpoint is open (local only).
    internal_api_key: str | None = None

    # ===========================================
    # PRICING & LIMITS
    # ===========================================
    book_generation_cost: int = 250
    story_idea_max_length: int = 1000
    short_description_length: int = 150
    error_message_max_length: int = 500

    # ===========================================
    # STORY WRITER (text generation)
    # ===========================================
    story_provider: str = "workflow"  # workflow, openai
    story_api_url: str = "https://aitutor-api.vercel.app/api/v1/run/wf_ilady9xrjr3krzt0j8ria7ik"
    story_api_key: str = ""
    story_api_timeout: float = 180.0

    # ===========================================
    # OPENAI API (Story provider: openai)
    # ===========================================
    openai_api_key: str = ""
    openai_story_model: str = "gpt-4o-mini"

    # ===========================================
    # IMAGE RENDERER (trigger + poll)
    # ===========================================
    render_api_url: str = "https://api.myapps.ai/api"
    render_api_key: str = ""
    render_deployment_id: str = "8f96cb86-5cbb-4ad0-9837-8a79eeb5103a"
    render_cdn_base_url: str = "https://comfy-deploy.nyc3.cdn.digitaloceanspaces.com/outputs/runs"
    render_default_filename: str = "ComfyUI_00001_.png"
    render_timeout: float = 60.0
    # Trigger retry budget: delay before attempt N+1 is N * backoff
    render_trigger_max_attempts: int = 5
    render_trigger_backoff_seconds: float = 2.0
    # Polling budget: 90 * 10s ~= 15 minutes
    render_poll_interval_seconds: float = 10.0
    render_poll_max_attempts: int = 90
    render_poll_max_consecutive_errors: int = 10
    # Countdown step between enqueued render tasks of one book
    render_dispatch_stagger_seconds: float = 0.2

    # ===========================================
    # STORAGE
    # ===========================================
    storage_base_path: str = "/data/book_images"
    storage_public_base_url: str = "http://localhost:8000/media"

    # ===========================================
    # SHARING
    # ===========================================
    # Frontend origin for public links: {share_base_url}/book/{share_id}
    share_base_url: str = "http://localhost:3000"
    share_id_length: int = 10

    # ===========================================
    # WATCHDOG
    # ===========================================
    watchdog_text_stage_minutes: int = 15
    watchdog_image_stage_minutes: int = 60

    # ===========================================
    # CIRCUIT BREAKER
    # ===========================================
    cb_failure_threshold: int = 5
    cb_open_seconds: int = 30
    circuit_breaker_backend: str = "redis"  # redis, memory

    # ===========================================
    # LOGGING
    # ===========================================
    request_id_header: str = "X-Request-Id"
    log_level: str = "INFO"
    log_file: str | None = None
    log_max_bytes: int = 10_000_000
    log_backup_count: int = 5

    # ===========================================
    # STATE MANAGEMENT
    # ===========================================
    # POST /books Idempotency-Key claims live this long
    idempotency_ttl: int = 300

    @field_validator("auth_secret_key")
    @classmethod
    def validate_auth_secret(cls, v: str) -> str:
        """Ensure token signing secret is reasonably secure."""
        if len(v) < 16:
            raise ValueError("auth_secret_key must be at least 16 characters")
        if v in ("changeme", "secret", "password", "admin"):
            raise ValueError("auth_secret_key is too weak, please change it")
        return v

    @field_validator("story_provider", "circuit_breaker_backend")
    @classmethod
    def normalize_choice(cls, v: str) -> str:
        return v.lower().strip()

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


settings = Settings()
