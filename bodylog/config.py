# Process configuration, resolved once at startup and passed to the adapters.
import os
import tempfile
from dataclasses import dataclass, field
from typing import Optional

from .credentials import CredentialProvider, provider_from_env
from .errors import ConfigError

STRICT = 'strict'
LENIENT = 'lenient'
MISSING_FIELD_POLICIES = (STRICT, LENIENT)


@dataclass(frozen=True)
class Settings:
    gemini_api_key: str
    spreadsheet_id: str
    credentials: Optional[CredentialProvider] = field(default=None, repr=False)
    gemini_model: str = 'gemini-2.5-flash'
    sheet_name: str = 'Sheet1'
    provider_timeout: float = 60.0
    store_timeout: float = 30.0
    store_retries: int = 3
    missing_fields: str = STRICT
    timezone: Optional[str] = None
    upload_dir: str = field(default_factory=tempfile.gettempdir)
    log_level: str = 'INFO'

    def __post_init__(self):
        if self.missing_fields not in MISSING_FIELD_POLICIES:
            raise ConfigError(
                f"MISSING_FIELDS must be one of {', '.join(MISSING_FIELD_POLICIES)}, "
                f"got {self.missing_fields!r}"
            )
        if self.store_retries < 0:
            raise ConfigError("STORE_RETRIES cannot be negative")

    @classmethod
    def from_env(cls, environ=None):
        env = os.environ if environ is None else environ

        gemini_api_key = env.get('GEMINI_API_KEY') or env.get('GOOGLE_GENAI_KEY')
        if not gemini_api_key:
            raise ConfigError("GEMINI_API_KEY environment variable not set.")
        spreadsheet_id = env.get('SPREADSHEET_ID')
        if not spreadsheet_id:
            raise ConfigError("SPREADSHEET_ID environment variable not set.")

        return cls(
            gemini_api_key=gemini_api_key,
            spreadsheet_id=spreadsheet_id,
            credentials=provider_from_env(env),
            gemini_model=env.get('GEMINI_MODEL') or 'gemini-2.5-flash',
            sheet_name=env.get('SHEET_NAME') or 'Sheet1',
            provider_timeout=_number(env, 'PROVIDER_TIMEOUT', 60.0, float),
            store_timeout=_number(env, 'STORE_TIMEOUT', 30.0, float),
            store_retries=_number(env, 'STORE_RETRIES', 3, int),
            missing_fields=(env.get('MISSING_FIELDS') or STRICT).lower(),
            timezone=env.get('TIMEZONE') or None,
            upload_dir=env.get('UPLOAD_DIR') or tempfile.gettempdir(),
            log_level=(env.get('LOG_LEVEL') or 'INFO').upper(),
        )


def _number(env, name, default, cast):
    raw = env.get(name)
    if raw in (None, ''):
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from None
