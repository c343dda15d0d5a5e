"""Configuration management using Pydantic settings.

Environment holds the raw environment variables (upper case, as they appear
in the process environment or .env file). Settings holds the resolved,
lower-case values consumed by the application and is built by Settings.load().
"""

from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Project root directory (parent of breakpad_server/)
_PROJECT_ROOT = Path(__file__).resolve().parent.parent

# Default secret key that must be changed in production
_DEFAULT_SECRET_KEY = "dev-secret-key-change-in-production"

_DEFAULT_DATA_DIR = Path.home() / ".breakpad-server"

# The minidump file field is always accepted, even when not configured
MINIDUMP_FIELD = "upload_file_minidump"
MINIDUMP_DOWNLOAD_AS = "upload_file_minidump.{id}.dmp"


class ConfigurationError(Exception):
    """Raised when application configuration is invalid."""

    pass


class FileFieldConfig(BaseModel):
    """A crash report file field accepted on upload."""

    model_config = ConfigDict(frozen=True)

    name: str
    download_as: str | None = None

    def download_name(self, report_id: int) -> str:
        """Return the attachment file name for a given report."""
        template = self.download_as or self.name
        return template.replace("{id}", str(report_id))


class Environment(BaseSettings):
    """Raw environment variable loading."""

    model_config = SettingsConfigDict(
        env_file=_PROJECT_ROOT / ".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Flask settings
    SECRET_KEY: str = Field(default=_DEFAULT_SECRET_KEY)
    FLASK_ENV: str = Field(default="development")
    DEBUG: bool = Field(default=True)

    # CORS settings
    CORS_ORIGINS: list[str] = Field(default=["http://localhost:3000"])

    # Storage locations
    DATA_DIR: Path = Field(default=_DEFAULT_DATA_DIR)
    DATABASE_URL: str | None = Field(default=None)

    # Keep uploaded files and symbol text in the database instead of on disk
    FILES_IN_DATABASE: bool = Field(default=False)
    FILE_MAX_UPLOAD_SIZE: int | None = Field(default=None)

    # Crash report fields beyond product/version
    CUSTOM_FILE_FIELDS: list[str | FileFieldConfig] = Field(default_factory=list)
    CUSTOM_PARAM_FIELDS: list[str] = Field(default_factory=list)
    EXTRA_FIELD: str | None = Field(default=None)

    # External analyzer
    STACKWALK_EXECUTABLE: str = Field(default="minidump-stackwalk")
    STACKWALK_TIMEOUT_SECONDS: float | None = Field(default=None)

    # Analysis cache bounds (unbounded when unset)
    ANALYSIS_CACHE_MAX_ENTRIES: int | None = Field(default=None)
    ANALYSIS_CACHE_TTL_SECONDS: float | None = Field(default=None)

    # Blobs up to this length are read as relative paths (0 disables)
    INLINE_PATH_MAX_LENGTH: int = Field(default=128)


class FlaskConfig:
    """Flask and Flask-SQLAlchemy configuration keys."""

    def __init__(self, settings: "Settings") -> None:
        self.SECRET_KEY = settings.secret_key
        self.DEBUG = settings.debug
        self.SQLALCHEMY_DATABASE_URI = settings.database_url
        self.SQLALCHEMY_TRACK_MODIFICATIONS = False
        self.SQLALCHEMY_ENGINE_OPTIONS = settings.sqlalchemy_engine_options
        self.MAX_CONTENT_LENGTH = settings.file_max_upload_size


class Settings(BaseModel):
    """Resolved application settings."""

    # Flask settings
    secret_key: str = _DEFAULT_SECRET_KEY
    flask_env: str = "development"
    debug: bool = True

    # CORS settings
    cors_origins: list[str] = ["http://localhost:3000"]

    # Storage locations
    data_dir: Path = _DEFAULT_DATA_DIR
    symbols_dir: Path = _DEFAULT_DATA_DIR / "symbols"
    uploads_dir: Path = _DEFAULT_DATA_DIR / "uploads"

    # Database settings
    database_url: str = f"sqlite:///{_DEFAULT_DATA_DIR / 'database.sqlite'}"
    sqlalchemy_engine_options: dict[str, Any] = Field(default_factory=dict)

    # Storage mode
    files_in_database: bool = False
    file_max_upload_size: int | None = None

    # Crash report fields
    file_fields: list[FileFieldConfig] = Field(
        default_factory=lambda: [FileFieldConfig(name=MINIDUMP_FIELD, download_as=MINIDUMP_DOWNLOAD_AS)]
    )
    param_fields: list[str] = Field(default_factory=list)
    extra_field: str | None = None

    # External analyzer
    stackwalk_executable: str = "minidump-stackwalk"
    stackwalk_timeout_seconds: float | None = None

    # Analysis cache
    analysis_cache_max_entries: int | None = None
    analysis_cache_ttl_seconds: float | None = None

    inline_path_max_length: int = 128

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.flask_env == "production" or not self.debug

    def get_file_field(self, name: str) -> FileFieldConfig | None:
        """Look up a configured file field by name."""
        for field in self.file_fields:
            if field.name == name:
                return field
        return None

    @classmethod
    def load(cls, env: Environment | None = None) -> "Settings":
        """Load settings from environment variables."""
        if env is None:
            env = Environment()

        data_dir = env.DATA_DIR.expanduser()
        database_url = env.DATABASE_URL or f"sqlite:///{data_dir / 'database.sqlite'}"

        # upload_file_minidump always comes first
        file_fields = [FileFieldConfig(name=MINIDUMP_FIELD, download_as=MINIDUMP_DOWNLOAD_AS)]
        for field in env.CUSTOM_FILE_FIELDS:
            if isinstance(field, str):
                field = FileFieldConfig(name=field)
            if field.name != MINIDUMP_FIELD:
                file_fields.append(field)

        # The extra field collects unknown form fields, so it must be a param
        param_fields = [name for name in env.CUSTOM_PARAM_FIELDS if name != "ip"]
        if env.EXTRA_FIELD and env.EXTRA_FIELD not in param_fields:
            param_fields.append(env.EXTRA_FIELD)

        return cls(
            secret_key=env.SECRET_KEY,
            flask_env=env.FLASK_ENV,
            debug=env.DEBUG,
            cors_origins=env.CORS_ORIGINS,
            data_dir=data_dir,
            symbols_dir=data_dir / "symbols",
            uploads_dir=data_dir / "uploads",
            database_url=database_url,
            files_in_database=env.FILES_IN_DATABASE,
            file_max_upload_size=env.FILE_MAX_UPLOAD_SIZE,
            file_fields=file_fields,
            param_fields=param_fields,
            extra_field=env.EXTRA_FIELD,
            stackwalk_executable=env.STACKWALK_EXECUTABLE,
            stackwalk_timeout_seconds=env.STACKWALK_TIMEOUT_SECONDS,
            analysis_cache_max_entries=env.ANALYSIS_CACHE_MAX_ENTRIES,
            analysis_cache_ttl_seconds=env.ANALYSIS_CACHE_TTL_SECONDS,
            inline_path_max_length=env.INLINE_PATH_MAX_LENGTH,
        )

    def validate_production_config(self) -> None:
        """Validate that required configuration is set for production.

        Raises:
            ConfigurationError: If required settings are missing or insecure
        """
        errors: list[str] = []

        # SECRET_KEY must be changed from default in production
        if self.is_production and self.secret_key == _DEFAULT_SECRET_KEY:
            errors.append(
                "SECRET_KEY must be set to a secure value in production "
                "(current value is the insecure default)"
            )

        if self.inline_path_max_length < 0:
            errors.append("INLINE_PATH_MAX_LENGTH must not be negative")

        if self.analysis_cache_max_entries is not None and self.analysis_cache_max_entries < 1:
            errors.append("ANALYSIS_CACHE_MAX_ENTRIES must be at least 1 when set")

        if errors:
            raise ConfigurationError(
                "Configuration validation failed:\n  - " + "\n  - ".join(errors)
            )

    def to_flask_config(self) -> FlaskConfig:
        """Build the Flask configuration object."""
        return FlaskConfig(self)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings.load()
