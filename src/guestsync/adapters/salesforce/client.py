"""HTTP client for the Salesforce REST API."""

from __future__ import annotations

from http import HTTPStatus
from logging import getLogger
from typing import TYPE_CHECKING, Unpack

import httpx
from pydantic import ValidationError

from guestsync.adapters.http_resilience import ResilientClient
from guestsync.domain.ports import CrmError

from .schema import QueryResponse, SaveResult, TokenResponse

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from types import TracebackType

    from guestsync.adapters.http_resilience import RequestOptions
    from guestsync.config.http_resilience import ResilienceConfig
    from guestsync.config.salesforce import SalesforceConfig

log = getLogger(__name__)

# sObject collections accept at most 200 records per request.
MAX_COLLECTION_SIZE = 200


class SalesforceAPIError(CrmError):
    """Raised when a Salesforce call fails as a whole (transport, auth, bad query)."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class SalesforceClient:
    """Refresh-token authenticated client for SOQL queries and sObject collections."""

    def __init__(
        self,
        *,
        config: SalesforceConfig,
        client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
    ) -> None:
        self._config = config
        self._client_factory = client_factory or ResilientClient
        self._http: ResilientClient | None = None
        self._access_token: str | None = None
        self._instance_url = config.instance_url

    async def __aenter__(self) -> SalesforceClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    def _client(self) -> ResilientClient:
        if self._http is None:
            self._http = self._client_factory(self._config.resilience)
        return self._http

    async def authenticate(self) -> str:
        """Exchange the refresh token for a fresh access token."""

        url = f"{self._config.login_url.rstrip('/')}/services/oauth2/token"
        data = {
            "grant_type": "refresh_token",
            "client_id": self._config.client_id,
            "client_secret": self._config.client_secret,
            "refresh_token": self._config.refresh_token,
        }
        try:
            response = await self._client().post(url, data=data)
        except httpx.HTTPError as exc:
            raise SalesforceAPIError(f"Salesforce authentication failed: {exc}") from exc
        if response.status_code != HTTPStatus.OK:
            raise SalesforceAPIError(
                f"Salesforce authentication failed: {response.text}",
                status_code=response.status_code,
            )
        token = _parse(TokenResponse, response)
        self._access_token = token.access_token
        if token.instance_url:
            self._instance_url = token.instance_url.rstrip("/")
        log.info("Authenticated with Salesforce at %s", self._instance_url)
        return token.access_token

    async def query(self, soql: str) -> list[dict[str, object]]:
        """Run a SOQL query and follow ``nextRecordsUrl`` until done."""

        response = await self._request("GET", f"{self._config.data_path}/query", params={"q": soql})
        page = _parse(QueryResponse, response)
        records = list(page.records)
        while not page.done and page.next_records_url:
            response = await self._request("GET", page.next_records_url)
            page = _parse(QueryResponse, response)
            records.extend(page.records)
        log.debug("SOQL returned %s records", len(records))
        return records

    async def create_records(
        self, sobject: str, records: Sequence[dict[str, object]]
    ) -> list[SaveResult]:
        return await self._save("POST", sobject, records)

    async def update_records(
        self, sobject: str, records: Sequence[dict[str, object]]
    ) -> list[SaveResult]:
        return await self._save("PATCH", sobject, records)

    async def _save(
        self, method: str, sobject: str, records: Sequence[dict[str, object]]
    ) -> list[SaveResult]:
        results: list[SaveResult] = []
        for start in range(0, len(records), MAX_COLLECTION_SIZE):
            chunk = records[start : start + MAX_COLLECTION_SIZE]
            body = {
                "allOrNone": False,
                "records": [{"attributes": {"type": sobject}, **record} for record in chunk],
            }
            response = await self._request(
                method, f"{self._config.data_path}/composite/sobjects", json=body
            )
            try:
                payload = response.json()
            except ValueError as exc:
                raise SalesforceAPIError(f"Malformed {sobject} save response: {exc}") from exc
            if not isinstance(payload, list) or len(payload) != len(chunk):
                raise SalesforceAPIError(f"Unexpected {sobject} save response: {payload!r}")
            try:
                results.extend(SaveResult.model_validate(item) for item in payload)
            except ValidationError as exc:
                raise SalesforceAPIError(f"Malformed {sobject} save response: {exc}") from exc
        return results

    async def _request(
        self,
        method: str,
        path: str,
        **kwargs: Unpack[RequestOptions],
    ) -> httpx.Response:
        if self._access_token is None:
            await self.authenticate()
        response = await self._send(method, path, **kwargs)
        if response.status_code == HTTPStatus.UNAUTHORIZED:
            log.info("Salesforce session expired, refreshing access token")
            await self.authenticate()
            response = await self._send(method, path, **kwargs)
        if response.is_error:
            raise SalesforceAPIError(
                f"Salesforce {method} {path} failed: {response.status_code} {response.text}",
                status_code=response.status_code,
            )
        return response

    async def _send(
        self,
        method: str,
        path: str,
        **kwargs: Unpack[RequestOptions],
    ) -> httpx.Response:
        headers = {"Authorization": f"Bearer {self._access_token}"}
        try:
            return await self._client().request(
                method, f"{self._instance_url}{path}", headers=headers, **kwargs
            )
        except httpx.HTTPError as exc:
            raise SalesforceAPIError(f"Salesforce {method} {path} failed: {exc}") from exc


def _parse[M: (TokenResponse, QueryResponse)](model: type[M], response: httpx.Response) -> M:
    try:
        return model.model_validate(response.json())
    except ValueError as exc:
        raise SalesforceAPIError(f"Malformed Salesforce response: {exc}") from exc
