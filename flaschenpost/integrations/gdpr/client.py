"""Client helper for the consent and data-subject-rights endpoints.

Mirrors the current consent choices in a local store so cookie decisions can
be made without a round trip, and forwards consent changes and GDPR requests
to the HTTP API.
"""

import json
import logging
from datetime import datetime, timedelta
from typing import Any

import httpx

from flaschenpost.integrations.gdpr.storage import ConsentStorage, MemoryConsentStorage
from flaschenpost.models.base import as_utc, utcnow
from flaschenpost.models.consent import ConsentType

logger = logging.getLogger(__name__)

LOCAL_CONSENT_KEY = "gdpr-consent"
USER_DATA_KEY_MARKERS = ("user", "reservation", "session")

# Substring of a cookie name -> consent category guarding it
COOKIE_CATEGORIES: dict[str, ConsentType] = {
    "session": ConsentType.ESSENTIAL,
    "csrf": ConsentType.ESSENTIAL,
    "auth": ConsentType.ESSENTIAL,
    "preferences": ConsentType.FUNCTIONAL,
    "language": ConsentType.FUNCTIONAL,
    "theme": ConsentType.FUNCTIONAL,
    "analytics": ConsentType.ANALYTICS,
    "ga": ConsentType.ANALYTICS,
    "gtag": ConsentType.ANALYTICS,
    "marketing": ConsentType.MARKETING,
    "ads": ConsentType.MARKETING,
    "facebook": ConsentType.MARKETING,
}

SENSITIVE_FIELDS = ("password", "paymentInfo", "socialSecurityNumber")
ANONYMIZED_KEEP_FIELDS = ("id", "createdAt", "updatedAt", "country", "ageGroup")


class ConsentClientError(Exception):
    """The API rejected or failed a consent or data-subject request."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def cookie_category(cookie_name: str) -> ConsentType:
    """Consent category for a cookie; unknown cookies count as functional."""
    name = cookie_name.lower()
    for marker, category in COOKIE_CATEGORIES.items():
        if marker in name:
            return category
    return ConsentType.FUNCTIONAL


def sanitize_user_data(user_data: dict[str, Any]) -> dict[str, Any]:
    """Copy without secrets and with ``notes`` cut to 500 characters."""
    sanitized = {k: v for k, v in user_data.items() if k not in SENSITIVE_FIELDS}
    notes = sanitized.get("notes")
    if isinstance(notes, str) and len(notes) > 500:
        sanitized["notes"] = notes[:500] + "..."
    return sanitized


def anonymize_user_data(user_data: dict[str, Any]) -> dict[str, Any]:
    """Keep only fields that cannot identify a person."""
    return {k: user_data[k] for k in ANONYMIZED_KEEP_FIELDS if k in user_data}


class ConsentManager:
    """Consent bookkeeping for one browser-like client."""

    def __init__(
        self,
        base_url: str,
        storage: ConsentStorage | None = None,
        *,
        retention_days: int = 365,
        consent_version: str = "1.0",
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.storage: ConsentStorage = storage if storage is not None else MemoryConsentStorage()
        self.retention_days = retention_days
        self.consent_version = consent_version
        self.timeout = timeout
        self.transport = transport

    # --- HTTP ---

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self.transport,
            headers={"Content-Type": "application/json"},
        )

    async def _request(
        self,
        method: str,
        path: str,
        payload: dict[str, Any],
        failure: str,
    ) -> httpx.Response:
        try:
            async with self._client() as client:
                response = await client.request(method, path, json=payload)
        except httpx.HTTPError as e:
            logger.error("%s: %s", failure, e)
            raise ConsentClientError(f"{failure}: {e}") from e
        if not response.is_success:
            logger.error("%s: status=%s", failure, response.status_code)
            raise ConsentClientError(failure, status_code=response.status_code)
        return response

    # --- consent ---

    async def record_consent(
        self,
        user_id: str | None,
        consents: dict[str, bool],
        *,
        ip_address: str | None = None,
        user_agent: str | None = None,
        timestamp: datetime | None = None,
    ) -> None:
        """Send consent choices to the API, then mirror them locally."""
        payload: dict[str, Any] = {
            "userId": user_id,
            "consents": consents,
            "version": self.consent_version,
            "timestamp": (timestamp or utcnow()).isoformat(),
            "ipAddress": ip_address,
            "userAgent": user_agent,
        }
        await self._request("POST", "/api/gdpr/consent", payload, "Failed to record consent")
        self.store_local_consent(consents)

    async def withdraw_consent(self, user_id: str, consent_type: ConsentType | str) -> None:
        consent_type = ConsentType(consent_type)
        await self._request(
            "POST",
            "/api/gdpr/consent/withdraw",
            {
                "userId": user_id,
                "consentType": consent_type.value,
                "timestamp": utcnow().isoformat(),
            },
            "Failed to withdraw consent",
        )
        local = self.get_local_consent()
        if local is not None:
            local[consent_type.value] = False
            self.store_local_consent(local)

    def get_local_consent(self) -> dict[str, bool] | None:
        """Locally mirrored consent, or None when absent, unreadable or expired.

        An expired entry is removed from the store.
        """
        stored = self.storage.get(LOCAL_CONSENT_KEY)
        if not stored:
            return None
        try:
            parsed = json.loads(stored)
            stored_at = as_utc(datetime.fromisoformat(parsed["timestamp"]))
            consents = dict(parsed["consents"])
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Failed to read local consent: %s", e)
            return None

        if stored_at < utcnow() - timedelta(days=self.retention_days):
            self.clear_local_consent()
            return None
        return consents

    def store_local_consent(self, consents: dict[str, bool]) -> None:
        self.storage.set(
            LOCAL_CONSENT_KEY,
            json.dumps(
                {
                    "consents": consents,
                    "version": self.consent_version,
                    "timestamp": utcnow().isoformat(),
                }
            ),
        )

    def clear_local_consent(self) -> None:
        self.storage.remove(LOCAL_CONSENT_KEY)

    def clear_local_user_data(self) -> None:
        for key in self.storage.keys():
            if any(marker in key for marker in USER_DATA_KEY_MARKERS):
                self.storage.remove(key)

    # --- data subject rights ---

    async def request_data_export(self, user_id: str) -> bytes:
        """Download the user's data export (Art. 20) as raw JSON bytes."""
        response = await self._request(
            "POST",
            "/api/gdpr/export-data",
            {"userId": user_id, "requestTimestamp": utcnow().isoformat()},
            "Failed to export data",
        )
        return response.content

    async def request_data_deletion(self, user_id: str, reason: str = "user_request") -> None:
        """Ask for erasure (Art. 17) and forget everything held locally."""
        await self._request(
            "DELETE",
            "/api/gdpr/delete-data",
            {
                "userId": user_id,
                "reason": reason,
                "requestTimestamp": utcnow().isoformat(),
                "confirmDeletion": True,
            },
            "Failed to delete data",
        )
        self.clear_local_consent()
        self.clear_local_user_data()

    async def request_data_rectification(self, user_id: str, updates: dict[str, Any]) -> None:
        await self._request(
            "PATCH",
            "/api/gdpr/rectify-data",
            {
                "userId": user_id,
                "updates": updates,
                "requestTimestamp": utcnow().isoformat(),
            },
            "Failed to rectify data",
        )

    async def log_data_processing(
        self,
        *,
        action: str,
        data_type: str,
        legal_basis: str,
        user_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Best-effort audit entry; failures are logged, never raised."""
        payload = {
            "userId": user_id,
            "action": action,
            "dataType": data_type,
            "legalBasis": legal_basis,
            "timestamp": utcnow().isoformat(),
            "details": json.dumps(details) if details else None,
        }
        try:
            await self._request(
                "POST", "/api/gdpr/log-processing", payload, "Failed to log data processing"
            )
        except ConsentClientError:
            pass

    # --- cookies ---

    def is_cookie_allowed(self, cookie_name: str) -> bool:
        """Essential cookies are always allowed; others need a local grant."""
        category = cookie_category(cookie_name)
        consent = self.get_local_consent()
        if consent is None:
            return category == ConsentType.ESSENTIAL
        return consent.get(category.value) is True

    # --- retention ---

    def generate_data_retention_date(self, created_at: datetime | None = None) -> datetime:
        return (created_at or utcnow()) + timedelta(days=self.retention_days)

    @staticmethod
    def is_retention_period_expired(retention_date: datetime | str) -> bool:
        if isinstance(retention_date, str):
            retention_date = datetime.fromisoformat(retention_date)
        return as_utc(retention_date) < utcnow()
