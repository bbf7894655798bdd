from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Protocol

import httpx

from metapage.config import get_settings
from metapage.integrations.http import build_outbound_headers
from metapage.page_engine.schemas.remote import (
    DataResponse,
    ExecProcRequest,
    ExecProcResponse,
    GetDataRequest,
    PageDataResponse,
)

logger = logging.getLogger(__name__)


class DataService(Protocol):
    """Server side of the page runtime: metadata, data reads and procedures."""

    async def get_page_data(
        self, prj_id: str, form_id: int, language_id: int
    ) -> PageDataResponse: ...

    async def get_data(self, request: GetDataRequest) -> DataResponse: ...

    async def exec_proc(self, request: ExecProcRequest) -> ExecProcResponse: ...


class DataServiceClient:
    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        timeout_s: Optional[float] = None,
        token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        settings = get_settings()
        self.base_url = (base_url or settings.DATA_SERVICE_BASE_URL).rstrip("/")
        self.timeout_s = (
            timeout_s if timeout_s is not None else settings.DATA_SERVICE_TIMEOUT_SECONDS
        )
        self._service_token = token if token is not None else settings.DATA_SERVICE_TOKEN
        self._transport = transport

    def _resolve_authorization(self) -> Optional[str]:
        token = (self._service_token or "").strip()
        if not token:
            return None
        if token.lower().startswith("bearer "):
            return token
        return f"Bearer {token}"

    async def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        headers = build_outbound_headers(
            authorization=self._resolve_authorization()
        ).as_dict()
        async with httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout_s,
            transport=self._transport,
        ) as client:
            resp = await client.post(path, json=payload, headers=headers)
            resp.raise_for_status()
            return resp.json()

    async def get_page_data(
        self, prj_id: str, form_id: int, language_id: int
    ) -> PageDataResponse:
        logger.debug(f"Fetching page metadata prj={prj_id} form={form_id}")
        body = await self._post(
            "/data/getPageData2",
            {"prjId": prj_id, "formId": form_id, "languageId": language_id},
        )
        return PageDataResponse.model_validate(body)

    async def get_data(self, request: GetDataRequest) -> DataResponse:
        body = await self._post(
            "/db/getData", request.model_dump(by_alias=True, mode="json")
        )
        return DataResponse.model_validate(body)

    async def exec_proc(self, request: ExecProcRequest) -> ExecProcResponse:
        body = await self._post(
            "/db/execProc", request.model_dump(by_alias=True, mode="json")
        )
        return ExecProcResponse.model_validate(body)
