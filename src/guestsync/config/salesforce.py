"""Salesforce configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from .env import optional_env, require_env_vars
from .http_resilience import RateLimit, ResilienceConfig

SALESFORCE_LOGIN_URL = "https://login.salesforce.com"
SALESFORCE_API_VERSION = "59.0"
SALESFORCE_TIMEOUT_SECONDS = 30.0
DEFAULT_GUEST_OBJECT = "TVRS_Guest__c"
DEFAULT_CONTACT_LOOKUP = "Contact__c"


@dataclass(frozen=True)
class SalesforceConfig:
    """Holds Salesforce connection settings and object names."""

    instance_url: str
    client_id: str
    client_secret: str
    refresh_token: str
    resilience: ResilienceConfig
    login_url: str = SALESFORCE_LOGIN_URL
    api_version: str = SALESFORCE_API_VERSION
    guest_object: str = DEFAULT_GUEST_OBJECT
    contact_lookup: str = DEFAULT_CONTACT_LOOKUP

    @property
    def data_path(self) -> str:
        return f"/services/data/v{self.api_version}"


def get_salesforce_config(*, resilience: ResilienceConfig | None = None) -> SalesforceConfig:
    values = require_env_vars(
        ("SF_INSTANCE_URL", "SF_CLIENT_ID", "SF_CLIENT_SECRET", "SF_REFRESH_TOKEN")
    )
    instance_url = values["SF_INSTANCE_URL"].rstrip("/")
    return SalesforceConfig(
        instance_url=instance_url,
        client_id=values["SF_CLIENT_ID"],
        client_secret=values["SF_CLIENT_SECRET"],
        refresh_token=values["SF_REFRESH_TOKEN"],
        login_url=optional_env("SF_LOGIN_URL", SALESFORCE_LOGIN_URL) or SALESFORCE_LOGIN_URL,
        api_version=optional_env("SF_API_VERSION", SALESFORCE_API_VERSION)
        or SALESFORCE_API_VERSION,
        guest_object=optional_env("SF_OBJECT", DEFAULT_GUEST_OBJECT) or DEFAULT_GUEST_OBJECT,
        contact_lookup=optional_env("SF_GUEST_CONTACT_LOOKUP", DEFAULT_CONTACT_LOOKUP)
        or DEFAULT_CONTACT_LOOKUP,
        resilience=resilience
        or ResilienceConfig(
            name="salesforce",
            base_url=instance_url,
            timeout_seconds=SALESFORCE_TIMEOUT_SECONDS,
            ratelimit=RateLimit(max_calls=20, per_seconds=1.0),
        ),
    )
