"""OPERA source database configuration values."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from sqlalchemy.engine import URL

from .env import env_int, optional_env, require_env_vars
from .errors import InvalidConfigurationError, MissingConfigurationError

DEFAULT_ORACLE_PORT = 1521
DEFAULT_OPERA_SCHEMA = "OPERA"
DEFAULT_OPERA_RESORT = "VINES"
DEFAULT_OPERA_TIMEZONE = "America/Argentina/Buenos_Aires"


@dataclass(frozen=True, slots=True)
class OperaConfig:
    host: str
    user: str
    password: str
    port: int = DEFAULT_ORACLE_PORT
    sid: str | None = None
    service: str | None = None
    schema: str = DEFAULT_OPERA_SCHEMA
    resort: str = DEFAULT_OPERA_RESORT
    timezone: str = DEFAULT_OPERA_TIMEZONE
    override_today: date | None = None

    def dsn(self) -> str:
        """Connect string for python-oracledb (SID descriptor or easy-connect service)."""

        if self.sid:
            return (
                f"(DESCRIPTION=(ADDRESS=(PROTOCOL=TCP)(HOST={self.host})(PORT={self.port}))"
                f"(CONNECT_DATA=(SID={self.sid})))"
            )
        return f"{self.host}:{self.port}/{self.service}"

    def sqlalchemy_url(self) -> URL:
        query = {"service_name": self.service} if self.service and not self.sid else {}
        return URL.create(
            "oracle+oracledb",
            username=self.user,
            password=self.password,
            host=self.host,
            port=self.port,
            database=self.sid,
            query=query,
        )


def _parse_override_today(raw: str | None) -> date | None:
    if raw is None:
        return None
    try:
        return date.fromisoformat(raw)
    except ValueError:
        raise InvalidConfigurationError("OVERRIDE_TODAY", raw, "an ISO date") from None


def get_opera_config() -> OperaConfig:
    values = require_env_vars(("ORACLE_HOST", "ORACLE_USER", "ORACLE_PASSWORD"))
    sid = optional_env("ORACLE_SID")
    service = optional_env("ORACLE_SERVICE")
    if sid is None and service is None:
        raise MissingConfigurationError("Missing configuration for: ORACLE_SID or ORACLE_SERVICE")
    return OperaConfig(
        host=values["ORACLE_HOST"],
        user=values["ORACLE_USER"],
        password=values["ORACLE_PASSWORD"],
        port=env_int("ORACLE_PORT", DEFAULT_ORACLE_PORT),
        sid=sid,
        service=service,
        schema=optional_env("OPERA_SCHEMA", DEFAULT_OPERA_SCHEMA) or DEFAULT_OPERA_SCHEMA,
        resort=optional_env("OPERA_RESORT", DEFAULT_OPERA_RESORT) or DEFAULT_OPERA_RESORT,
        timezone=optional_env("OPERA_TIMEZONE", DEFAULT_OPERA_TIMEZONE) or DEFAULT_OPERA_TIMEZONE,
        override_today=_parse_override_today(optional_env("OVERRIDE_TODAY")),
    )
