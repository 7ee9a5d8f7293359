from os import environ
from pathlib import Path
from typing import Annotated

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_DIR = Path(__file__).parent.parent.resolve()

ENV_FILE = environ.get("ENV_FILE", PROJECT_DIR / ".env")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=ENV_FILE, env_ignore_empty=True, extra="ignore")

    ENVIRONMENT: str = "local"
    LOG_LEVEL: str = "INFO"
    VERBOSE: bool = False
    LOGS_DIR: str = ""
    LOGFIRE_TOKEN: str = ""
    SENTRY_DSN: str = ""

    # remote credential service, e.g. https://proxy-broker.internal
    PROXY_SERVICE_URL: str = ""

    # local credential template
    PROXY_HOST: str = ""
    PROXY_PORT: Annotated[int, Field(ge=1, le=65535)] | None = None
    PROXY_BASE_USER: str = ""
    PROXY_PASS: str = ""
    PROXY_USERNAME_TEMPLATE: str = "{base_user};zip.{postal_code}"

    CREDENTIAL_TIMEOUT: float = 5.0
    TUNNEL_TIMEOUT: float = 8.0
    GEO_LOOKUP_TIMEOUT: float = 4.0
    VERIFY_DEADLINE: float = 30.0  # wall-clock budget for the whole candidate loop

    MAX_CANDIDATES: int = 0  # 0 means no cap

    GEO_TUNNEL_URL: str = (
        "http://ip-api.com/json/?fields=status,message,region,regionName,zip,query"
    )
    GEO_LOOKUP_URL: str = "https://ipwho.is/"
    IP_ECHO_URLS: list[str] = [
        "http://api.ipify.org",
        "http://checkip.amazonaws.com",
        "http://icanhazip.com",
        "http://ifconfig.me/ip",
    ]

    @model_validator(mode="after")
    def validate_settings(self):
        if not 0 < self.CREDENTIAL_TIMEOUT <= 5:
            raise ValueError("CREDENTIAL_TIMEOUT must be within (0, 5] seconds")
        if not 8 <= self.TUNNEL_TIMEOUT <= 10:
            raise ValueError("TUNNEL_TIMEOUT must be within [8, 10] seconds")
        if self.MAX_CANDIDATES < 0:
            raise ValueError("MAX_CANDIDATES must not be negative")
        return self

    @property
    def logs_dir(self) -> Path | None:
        if not self.LOGS_DIR:
            return None
        path = Path(self.LOGS_DIR).expanduser()
        if not path.exists():
            path.mkdir(parents=True, exist_ok=True)
        return path

    @property
    def proxy_template_configured(self) -> bool:
        return bool(self.PROXY_HOST and self.PROXY_PORT and self.PROXY_BASE_USER and self.PROXY_PASS)


settings = Settings()
