from __future__ import annotations

import logging
from typing import Callable, Optional

import httpx

from metapage.integrations.data_service import DataService
from metapage.page_engine.schemas.remote import (
    DataResponse,
    ExecProcRequest,
    ExecProcResponse,
    GetDataRequest,
)

logger = logging.getLogger(__name__)

ConnCodeResolver = Callable[[str], Optional[str]]


class RemoteGateway:
    """
    Step-boundary wrapper around the data service.

    Transport and decoding failures become an invalid reply, so the step
    that issued the call reports `can_run=False` instead of raising.
    `ValueError` covers a 2xx body that is not JSON as well as a reply that
    fails model validation.
    """

    def __init__(self, data_service: DataService, conn_code_for: ConnCodeResolver):
        self.data_service = data_service
        self.conn_code_for = conn_code_for

    async def get_data(self, request: GetDataRequest) -> DataResponse:
        target = request.data_adapter_name or f"sql {request.lookup_sql_id}"
        try:
            return await self.data_service.get_data(request)
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"getData {target} failed for {request.prj_id}: {e}", exc_info=True)
            return DataResponse(valid=False, message=str(e))

    async def exec_proc(self, request: ExecProcRequest) -> ExecProcResponse:
        try:
            return await self.data_service.exec_proc(request)
        except (httpx.HTTPError, ValueError) as e:
            logger.error(
                f"execProc {request.sql_id} failed for {request.prj_id}: {e}", exc_info=True
            )
            return ExecProcResponse(valid=False, message=str(e))
