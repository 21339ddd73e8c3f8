"""Tests for the consent client and its local stores."""

import json
from datetime import timedelta
from pathlib import Path
from typing import Any

import httpx
import pytest

from flaschenpost.integrations.gdpr.client import (
    LOCAL_CONSENT_KEY,
    ConsentClientError,
    ConsentManager,
    anonymize_user_data,
    cookie_category,
    sanitize_user_data,
)
from flaschenpost.integrations.gdpr.storage import FileConsentStorage, MemoryConsentStorage
from flaschenpost.models.base import utcnow
from flaschenpost.models.consent import ConsentType

CHOICES = {"essential": True, "functional": False, "analytics": True, "marketing": False}


class RecordingTransport:
    """Collects requests and answers them with a fixed status."""

    def __init__(self, status_code: int = 200, content: bytes = b'{"success": true}') -> None:
        self.requests: list[httpx.Request] = []
        self.status_code = status_code
        self.content = content

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, content=self.content)

    @property
    def last_json(self) -> Any:
        return json.loads(self.requests[-1].content)


def _manager(
    transport: RecordingTransport | None = None,
    storage: MemoryConsentStorage | None = None,
) -> ConsentManager:
    return ConsentManager(
        "http://api.test/",
        storage=storage,
        transport=httpx.MockTransport(transport or RecordingTransport()),
    )


class TestRecordConsent:
    @pytest.mark.asyncio
    async def test_posts_and_mirrors_locally(self) -> None:
        transport = RecordingTransport()
        manager = _manager(transport)

        await manager.record_consent("user-1", CHOICES, user_agent="pytest")

        request = transport.requests[0]
        assert request.method == "POST"
        assert str(request.url) == "http://api.test/api/gdpr/consent"
        body = transport.last_json
        assert body["userId"] == "user-1"
        assert body["consents"] == CHOICES
        assert body["version"] == "1.0"
        assert body["userAgent"] == "pytest"
        assert manager.get_local_consent() == CHOICES

    @pytest.mark.asyncio
    async def test_rejected_request_keeps_local_state(self) -> None:
        manager = _manager(RecordingTransport(status_code=500))

        with pytest.raises(ConsentClientError) as exc_info:
            await manager.record_consent(None, CHOICES)

        assert exc_info.value.status_code == 500
        assert manager.get_local_consent() is None

    @pytest.mark.asyncio
    async def test_network_error(self) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        manager = ConsentManager("http://api.test", transport=httpx.MockTransport(refuse))

        with pytest.raises(ConsentClientError, match="Failed to record consent"):
            await manager.record_consent("user-1", CHOICES)


class TestWithdrawConsent:
    @pytest.mark.asyncio
    async def test_updates_local_mirror(self) -> None:
        transport = RecordingTransport()
        manager = _manager(transport)
        manager.store_local_consent(dict(CHOICES))

        await manager.withdraw_consent("user-1", "analytics")

        assert transport.last_json["consentType"] == "analytics"
        assert transport.requests[0].url.path == "/api/gdpr/consent/withdraw"
        local = manager.get_local_consent()
        assert local is not None
        assert local["analytics"] is False


class TestLocalConsent:
    def test_expired_entry_is_cleared(self) -> None:
        storage = MemoryConsentStorage(
            {
                LOCAL_CONSENT_KEY: json.dumps(
                    {
                        "consents": CHOICES,
                        "version": "1.0",
                        "timestamp": (utcnow() - timedelta(days=400)).isoformat(),
                    }
                )
            }
        )
        manager = _manager(storage=storage)

        assert manager.get_local_consent() is None
        assert storage.get(LOCAL_CONSENT_KEY) is None

    def test_unreadable_entry(self) -> None:
        manager = _manager(storage=MemoryConsentStorage({LOCAL_CONSENT_KEY: "{not json"}))
        assert manager.get_local_consent() is None

    def test_cookie_decisions(self) -> None:
        manager = _manager()

        assert manager.is_cookie_allowed("session_id") is True
        assert manager.is_cookie_allowed("_ga") is False

        manager.store_local_consent(CHOICES)

        assert manager.is_cookie_allowed("_ga") is True
        assert manager.is_cookie_allowed("facebook_pixel") is False
        assert manager.is_cookie_allowed("theme") is False


class TestDataSubjectRequests:
    @pytest.mark.asyncio
    async def test_export_returns_body(self) -> None:
        transport = RecordingTransport(content=b'{"exportInfo": {}}')
        manager = _manager(transport)

        content = await manager.request_data_export("user-1")

        assert content == b'{"exportInfo": {}}'
        assert transport.last_json["userId"] == "user-1"

    @pytest.mark.asyncio
    async def test_deletion_clears_local_data(self) -> None:
        transport = RecordingTransport()
        storage = MemoryConsentStorage(
            {"user-profile": "{}", "reservation-draft": "{}", "theme": "dark"}
        )
        manager = _manager(transport, storage)
        manager.store_local_consent(CHOICES)

        await manager.request_data_deletion("user-1", "Umzug")

        request = transport.requests[0]
        assert request.method == "DELETE"
        assert transport.last_json["confirmDeletion"] is True
        assert transport.last_json["reason"] == "Umzug"
        assert storage.keys() == ["theme"]

    @pytest.mark.asyncio
    async def test_rectification(self) -> None:
        transport = RecordingTransport()

        await _manager(transport).request_data_rectification("user-1", {"lastName": "Müller"})

        assert transport.requests[0].method == "PATCH"
        assert transport.last_json["updates"] == {"lastName": "Müller"}

    @pytest.mark.asyncio
    async def test_processing_log_is_best_effort(self) -> None:
        transport = RecordingTransport(status_code=503)

        await _manager(transport).log_data_processing(
            action="accessed",
            data_type="user_data",
            legal_basis="user_request",
            details={"page": "/datenschutz"},
        )

        assert transport.last_json["details"] == '{"page": "/datenschutz"}'


class TestHelpers:
    @pytest.mark.parametrize(
        "name,category",
        [
            ("csrftoken", ConsentType.ESSENTIAL),
            ("language", ConsentType.FUNCTIONAL),
            ("_gtag_id", ConsentType.ANALYTICS),
            ("ads_tracking", ConsentType.MARKETING),
            ("unknown", ConsentType.FUNCTIONAL),
        ],
    )
    def test_cookie_category(self, name: str, category: ConsentType) -> None:
        assert cookie_category(name) == category

    def test_sanitize(self) -> None:
        data = {"email": "a@example.com", "password": "secret", "notes": "x" * 600}

        sanitized = sanitize_user_data(data)

        assert "password" not in sanitized
        assert sanitized["notes"] == "x" * 500 + "..."
        assert data["password"] == "secret"

    def test_anonymize(self) -> None:
        data = {"id": "u1", "email": "a@example.com", "country": "DE", "createdAt": "2026-01-01"}

        assert anonymize_user_data(data) == {
            "id": "u1",
            "createdAt": "2026-01-01",
            "country": "DE",
        }

    def test_retention_dates(self) -> None:
        manager = _manager()
        created = utcnow()

        assert manager.generate_data_retention_date(created) == created + timedelta(days=365)
        assert ConsentManager.is_retention_period_expired("2020-01-01T00:00:00") is True
        assert manager.is_retention_period_expired(utcnow() + timedelta(days=1)) is False


class TestFileConsentStorage:
    def test_persists_between_instances(self, tmp_path: Path) -> None:
        path = tmp_path / "consent" / "store.json"
        FileConsentStorage(path).set("gdpr-consent", "{}")

        storage = FileConsentStorage(path)
        assert storage.get("gdpr-consent") == "{}"
        storage.remove("gdpr-consent")
        assert FileConsentStorage(path).keys() == []

    def test_corrupt_file(self, tmp_path: Path) -> None:
        path = tmp_path / "store.json"
        path.write_text("not json", encoding="utf-8")

        assert FileConsentStorage(path).get("gdpr-consent") is None
