"""HTTP client for the Mercado Público tender API.

Wraps the two read operations the sync engine needs (list-by-date and
detail-by-code). Every failure, whether an HTTP error status, a transport
error or an undecodable payload, is returned as a failed
:class:`FetchResult` instead of raised. The API ticket travels as a query
parameter and is scrubbed from every message this module produces.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import date
from typing import Any, Generic, TypeVar

import requests
from pydantic import ValidationError
from requests import Response, Session

from tenderwatch.app.config import ApiSettings
from tenderwatch.domain.models import TenderListResponse, TenderRecord
from tenderwatch.domain.normalize import format_api_date
from tenderwatch.infrastructure.observability import get_logger, record_api_call

T = TypeVar("T")

LIST_PATH = "/licitaciones.json"
REDACTED = "***"

logger = get_logger(__name__)


@dataclass(frozen=True)
class FetchResult(Generic[T]):
    """Outcome of one remote call: either ``value`` or an ``error`` reason."""

    value: T | None = None
    error: str | None = None
    status: int | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.value is not None

    @classmethod
    def success(cls, value: T, status: int | None = None) -> "FetchResult[T]":
        return cls(value=value, status=status)

    @classmethod
    def failure(cls, error: str, status: int | None = None) -> "FetchResult[T]":
        return cls(error=error, status=status)


class MercadoPublicoClient:
    """Read-only client for ``/licitaciones.json``."""

    def __init__(
        self,
        settings: ApiSettings,
        *,
        session: Session | None = None,
    ) -> None:
        self.base_url = settings.base_url.rstrip("/")
        self.timeout_seconds = settings.timeout_seconds
        self._ticket = settings.ticket or ""
        self.session = session or requests.Session()

    # -------------------- public operations --------------------
    def fetch_by_date(self, day: date) -> FetchResult[TenderListResponse]:
        """Fetch the summaries of every tender listed for ``day``."""
        fecha = format_api_date(day)
        logger.info("Fetching tenders for date %s", fecha)
        result = self._get_json("list_by_date", {"fecha": fecha}, subject=f"date {fecha}")
        if not result.ok:
            return FetchResult.failure(result.error or "unknown error", result.status)
        try:
            envelope = TenderListResponse.model_validate(result.value)
        except ValidationError:
            logger.error("Malformed tender listing for date %s", fecha)
            return FetchResult.failure("malformed payload", result.status)
        return FetchResult.success(envelope, result.status)

    def fetch_detail(self, external_code: str) -> FetchResult[TenderRecord]:
        """Fetch the full record of one tender.

        An empty ``Listado`` is reported as a ``not found`` failure.
        """
        logger.debug("Fetching tender detail %s", external_code)
        result = self._get_json(
            "detail", {"codigo": external_code}, subject=f"tender {external_code}"
        )
        if not result.ok:
            return FetchResult.failure(result.error or "unknown error", result.status)
        try:
            envelope = TenderListResponse.model_validate(result.value)
        except ValidationError:
            logger.error("Malformed detail payload for tender %s", external_code)
            return FetchResult.failure("malformed payload", result.status)
        if not envelope.listing:
            logger.warning("No detail found for tender %s", external_code)
            return FetchResult.failure("not found", result.status)
        try:
            detail = TenderRecord.model_validate(envelope.listing[0])
        except ValidationError:
            logger.error("Malformed detail record for tender %s", external_code)
            return FetchResult.failure("malformed payload", result.status)
        return FetchResult.success(detail, result.status)

    def close(self) -> None:
        self.session.close()

    # -------------------- helpers --------------------
    def _prepare_headers(self) -> dict[str, str]:
        from tenderwatch import __version__

        return {
            "Accept": "application/json",
            "User-Agent": f"tenderwatch-client/{__version__}",
        }

    def _redact(self, text: str) -> str:
        if self._ticket:
            return text.replace(self._ticket, REDACTED)
        return text

    def _get_json(
        self, operation: str, params: dict[str, str], *, subject: str
    ) -> FetchResult[Any]:
        url = f"{self.base_url}{LIST_PATH}"
        query = {**params, "ticket": self._ticket}
        started = time.perf_counter()
        try:
            response = self.session.get(
                url, params=query, headers=self._prepare_headers(), timeout=self.timeout_seconds
            )
        except requests.RequestException as exc:
            reason = self._redact(f"{type(exc).__name__}: {exc}")
            logger.error("Request for %s failed: %s", subject, reason)
            record_api_call(operation, "transport_error", time.perf_counter() - started)
            return FetchResult.failure(reason)

        duration = time.perf_counter() - started
        if response.status_code >= 400:
            logger.error(
                "HTTP error %s for %s (details hidden)", response.status_code, subject
            )
            record_api_call(operation, "http_error", duration)
            return FetchResult.failure(f"HTTP {response.status_code}", response.status_code)

        payload = _decode_json(response)
        if payload is None:
            logger.error("Undecodable response body for %s", subject)
            record_api_call(operation, "invalid_json", duration)
            return FetchResult.failure("invalid JSON", response.status_code)

        record_api_call(operation, "ok", duration)
        return FetchResult.success(payload, response.status_code)


def records_from_listing(envelope: TenderListResponse) -> list[TenderRecord]:
    """Validate each ``Listado`` entry on its own, skipping malformed ones."""
    records: list[TenderRecord] = []
    for position, entry in enumerate(envelope.listing):
        try:
            records.append(TenderRecord.model_validate(entry))
        except ValidationError as exc:
            code = entry.get("CodigoExterno") if isinstance(entry, dict) else None
            logger.warning(
                "Skipping malformed listing entry %s (%s): %d validation errors",
                position,
                code or "no code",
                exc.error_count(),
            )
    return records


def _decode_json(response: Response) -> Any | None:
    try:
        payload = response.json()
    except ValueError:
        return None
    return payload if isinstance(payload, dict) else None


__all__ = [
    "FetchResult",
    "MercadoPublicoClient",
    "records_from_listing",
]
