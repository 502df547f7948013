"""Shared fixtures for Salesforce adapter tests."""

from __future__ import annotations

import pytest

from guestsync.adapters.salesforce import SalesforceClient, SalesforceGateway
from guestsync.config.http_resilience import ResilienceConfig
from guestsync.config.salesforce import SalesforceConfig
from tests.helpers.salesforce import (
    CONTACT_LOOKUP,
    GUEST_OBJECT,
    INSTANCE_URL,
    FakeSalesforce,
    make_client_factory,
)


@pytest.fixture
def salesforce_config() -> SalesforceConfig:
    return SalesforceConfig(
        instance_url=INSTANCE_URL,
        client_id="client-id",
        client_secret="client-secret",
        refresh_token="refresh-token",
        resilience=ResilienceConfig(name="salesforce", base_url=INSTANCE_URL),
    )


@pytest.fixture
def fake_salesforce() -> FakeSalesforce:
    return FakeSalesforce()


@pytest.fixture
def salesforce_client(
    salesforce_config: SalesforceConfig, fake_salesforce: FakeSalesforce
) -> SalesforceClient:
    return SalesforceClient(
        config=salesforce_config,
        client_factory=make_client_factory(fake_salesforce.handle),
    )


@pytest.fixture
def salesforce_gateway(salesforce_client: SalesforceClient) -> SalesforceGateway:
    return SalesforceGateway(
        salesforce_client,
        guest_object=GUEST_OBJECT,
        contact_lookup=CONTACT_LOOKUP,
        batch_size=2,
    )
