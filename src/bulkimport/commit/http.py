"""HttpSubmitter — the production submit function, posting to the HR backend."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from bulkimport.core.config import SubmitConfig
from bulkimport.core.exceptions import SubmitError
from bulkimport.models.records import CommitPayload, SubmitResponse

logger = logging.getLogger(__name__)


class HttpSubmitter:
    """Async submit function backed by httpx.

    XLSX payloads go up as multipart ``file`` uploads, JSON payloads as the
    request body. The configured timeout is enforced here, not by the engine.
    """

    def __init__(
        self,
        config: SubmitConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        form_fields: dict[str, str] | None = None,
    ) -> None:
        self._config = config or SubmitConfig()
        self._transport = transport
        self._form_fields = dict(form_fields or {})

    def endpoint(self, kind: str) -> str:
        try:
            return self._config.endpoints[kind]
        except KeyError as exc:
            raise SubmitError(f"No bulk endpoint configured for {kind!r}") from exc

    def _headers(self) -> dict[str, str]:
        if self._config.auth_token:
            return {"Authorization": f"Bearer {self._config.auth_token}"}
        return {}

    async def __call__(self, payload: CommitPayload) -> SubmitResponse:
        path = self.endpoint(payload.kind)
        request: dict[str, Any]
        if payload.transport == "xlsx":
            request = {
                "files": {"file": (payload.filename, payload.content, payload.content_type)},
                "data": {**self._form_fields, **payload.form_fields} or None,
            }
        else:
            request = {"json": payload.records}

        try:
            async with httpx.AsyncClient(
                base_url=self._config.base_url,
                timeout=self._config.timeout,
                headers=self._headers(),
                transport=self._transport,
            ) as client:
                response = await client.post(path, **request)
        except httpx.TimeoutException as exc:
            raise SubmitError(f"Upload timed out after {self._config.timeout}s") from exc
        except httpx.HTTPError as exc:
            raise SubmitError(f"Bulk submit to {path} failed: {exc}") from exc

        if response.status_code >= 500:
            raise SubmitError(
                f"Bulk endpoint {path} returned {response.status_code}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise SubmitError(
                f"Bulk endpoint {path} returned a non-JSON body", status_code=response.status_code,
            ) from exc

        parsed = self._parse(body)
        if response.is_error and not parsed.errors:
            raise SubmitError(
                parsed.message or f"Bulk endpoint {path} returned {response.status_code}",
                status_code=response.status_code,
            )
        logger.debug("Bulk submit to %s returned %d", path, response.status_code)
        return parsed

    @staticmethod
    def _parse(body: Any) -> SubmitResponse:
        # Backends wrap responses in {"data": ...} on some routes.
        if isinstance(body, dict) and isinstance(body.get("data"), dict) and "success" not in body:
            body = body["data"]
        if not isinstance(body, dict):
            raise SubmitError("Bulk endpoint returned an unexpected response shape")
        if "created" not in body:
            for alias in ("created_count", "success_count", "total_records"):
                if alias in body:
                    body = {**body, "created": body[alias]}
                    break
        try:
            return SubmitResponse.model_validate(body)
        except ValueError as exc:
            raise SubmitError(f"Unexpected bulk submit response: {exc}") from exc
