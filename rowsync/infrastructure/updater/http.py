"""HTTP adapter for the RecordUpdater port."""

import logging

import httpx

from rowsync.domain.ingest.model import Failed, RowRecord, Skipped, Updated, UpdateOutcome
from rowsync.domain.ingest.model.record import PART_NUMBER
from rowsync.domain.ingest.port import RecordUpdater
from rowsync.domain.shared.error import ExternalServiceError

logger = logging.getLogger(__name__)


class HttpRecordUpdater(RecordUpdater):
    """Posts each record to the record-update service.

    The service answers ``{"status": "updated" | "skipped", "reason": ...}``.
    404 means the record is unknown there and counts as skipped; other
    client errors are failures for that record. Server errors and
    transport problems raise ExternalServiceError.
    """

    def __init__(self, client: httpx.AsyncClient, url: str) -> None:
        self._client = client
        self._url = url

    async def apply(self, record: RowRecord) -> UpdateOutcome:
        if not record.get(PART_NUMBER):
            return Skipped("no part number")

        try:
            response = await self._client.post(self._url, json={"record": record})
        except httpx.HTTPError as e:
            raise ExternalServiceError(f"Record update request failed: {e}") from e

        if response.status_code == httpx.codes.NOT_FOUND:
            return Skipped(f"{record[PART_NUMBER]} not found")
        if response.is_server_error:
            raise ExternalServiceError(
                f"Record update service returned {response.status_code}", code="UPSTREAM_ERROR"
            )
        if response.is_client_error:
            return Failed(f"HTTP {response.status_code}: {response.text[:200]}")

        body = response.json() if response.content else {}
        status = body.get("status", "updated")
        if status == "skipped":
            return Skipped(body.get("reason"))
        if status == "failed":
            return Failed(body.get("reason") or "rejected by record update service")
        return Updated()
