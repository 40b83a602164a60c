# tests/unit/test_infrastructure.py
# Unit tests for infrastructure components

import pytest
import asyncio

from listsync.errors import (
    AppError,
    InvalidCodeError,
    RecordNotFoundError,
    StoreUnavailableError,
    ZoneConflictError,
    error_from_payload,
    user_facing,
)


class TestCircuitBreaker:
    """Test circuit breaker implementation."""

    @pytest.mark.asyncio
    async def test_circuit_starts_closed(self):
        from listsync.middleware.circuit_breaker import CircuitBreaker, CircuitState

        cb = CircuitBreaker("test", failure_threshold=3)
        assert cb.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_circuit_opens_after_failures(self):
        from listsync.middleware.circuit_breaker import CircuitBreaker, CircuitState

        cb = CircuitBreaker("test", failure_threshold=3, recovery_timeout=30)

        async def failing_func():
            raise StoreUnavailableError("down")

        for _ in range(3):
            with pytest.raises(StoreUnavailableError):
                await cb.call(failing_func)

        assert cb.state == CircuitState.OPEN

    @pytest.mark.asyncio
    async def test_open_circuit_rejects_immediately(self):
        from listsync.middleware.circuit_breaker import CircuitBreaker, CircuitBreakerError

        cb = CircuitBreaker("test", failure_threshold=1, recovery_timeout=30)
        calls = []

        async def failing_func():
            calls.append(1)
            raise StoreUnavailableError("down")

        with pytest.raises(StoreUnavailableError):
            await cb.call(failing_func)
        with pytest.raises(CircuitBreakerError):
            await cb.call(failing_func)
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_domain_errors_do_not_trip_the_circuit(self):
        from listsync.middleware.circuit_breaker import CircuitBreaker, CircuitState

        cb = CircuitBreaker(
            "test", failure_threshold=2, failure_exceptions=(StoreUnavailableError,),
        )

        async def missing():
            raise RecordNotFoundError()

        for _ in range(5):
            with pytest.raises(RecordNotFoundError):
                await cb.call(missing)

        assert cb.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_half_open_recovers(self):
        from listsync.middleware.circuit_breaker import CircuitBreaker, CircuitState

        cb = CircuitBreaker("test", failure_threshold=1, recovery_timeout=0.01, success_threshold=2)

        async def failing_func():
            raise StoreUnavailableError("down")

        async def ok():
            return "ok"

        with pytest.raises(StoreUnavailableError):
            await cb.call(failing_func)
        assert cb.state == CircuitState.OPEN

        await asyncio.sleep(0.02)
        assert await cb.call(ok) == "ok"
        assert cb.state == CircuitState.HALF_OPEN
        assert await cb.call(ok) == "ok"
        assert cb.state == CircuitState.CLOSED

    def test_registry_returns_same_breaker(self):
        from listsync.middleware.circuit_breaker import get_circuit_breaker

        assert get_circuit_breaker("registry-test") is get_circuit_breaker("registry-test")


class TestRetry:

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self):
        from listsync.middleware.circuit_breaker import retry_with_backoff

        attempts = []

        @retry_with_backoff(max_retries=2, base_delay=0.001, exceptions=(StoreUnavailableError,))
        async def flaky():
            attempts.append(1)
            if len(attempts) < 3:
                raise StoreUnavailableError("down")
            return "ok"

        assert await flaky() == "ok"
        assert len(attempts) == 3

    @pytest.mark.asyncio
    async def test_other_errors_are_not_retried(self):
        from listsync.middleware.circuit_breaker import retry_with_backoff

        attempts = []

        @retry_with_backoff(max_retries=3, base_delay=0.001, exceptions=(StoreUnavailableError,))
        async def missing():
            attempts.append(1)
            raise RecordNotFoundError()

        with pytest.raises(RecordNotFoundError):
            await missing()
        assert len(attempts) == 1

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self):
        from listsync.middleware.circuit_breaker import retry_with_backoff

        @retry_with_backoff(max_retries=1, base_delay=0.001, exceptions=(StoreUnavailableError,))
        async def down():
            raise StoreUnavailableError("down")

        with pytest.raises(StoreUnavailableError):
            await down()


class TestErrors:

    def test_payload_maps_back_to_error_class(self):
        exc = error_from_payload(409, {"error": {"code": "ZONE_CONFLICT", "message": "taken", "details": {"z": 1}}})
        assert isinstance(exc, ZoneConflictError)
        assert exc.message == "taken"
        assert exc.details == {"z": 1}

    def test_unknown_server_error_means_unavailable(self):
        exc = error_from_payload(502, "<html>bad gateway</html>")
        assert isinstance(exc, StoreUnavailableError)
        assert exc.status_code == 503

    def test_unknown_client_error_keeps_status(self):
        exc = error_from_payload(418, {"error": {"code": "TEAPOT", "message": "short and stout"}})
        assert type(exc) is AppError
        assert exc.status_code == 418
        assert exc.error_code == "TEAPOT"

    def test_user_facing(self):
        assert user_facing(InvalidCodeError()) == "Invalid code or missing share link."
        assert user_facing(RuntimeError("boom")) == "boom"
        assert user_facing(RuntimeError()) == "RuntimeError"


class TestSettings:

    def test_defaults(self, monkeypatch):
        from listsync.config import Settings

        for key in ("CODE_LENGTH", "LIST_POLL_SECONDS", "CHAT_POLL_SECONDS", "USER_ID"):
            monkeypatch.delenv(key, raising=False)
        s = Settings(_env_file=None)
        assert s.CODE_LENGTH == 6
        assert s.LIST_POLL_SECONDS == 6.0
        assert s.CHAT_POLL_SECONDS == 4.0
        assert s.USER_ID == ""
        assert s.DEVICE_NAME

    def test_validation(self, monkeypatch):
        from pydantic import ValidationError
        from listsync.config import Settings

        monkeypatch.setenv("LOG_LEVEL", "chatty")
        with pytest.raises(ValidationError):
            Settings(_env_file=None)

        monkeypatch.setenv("LOG_LEVEL", "debug")
        monkeypatch.setenv("CHAT_POLL_SECONDS", "0")
        with pytest.raises(ValidationError):
            Settings(_env_file=None)

    def test_session_from_settings(self, monkeypatch):
        from listsync.clients.local_store import LocalRecordStore
        from listsync.config import Settings
        from listsync.services.session_manager import SyncSession
        from listsync.services.shopping_list import ShoppingListStore

        monkeypatch.setenv("LIST_POLL_SECONDS", "2.5")
        monkeypatch.setenv("DEVICE_NAME", "Kitchen tablet")
        session = SyncSession.from_settings(Settings(_env_file=None), LocalRecordStore(user_id="x"), ShoppingListStore())
        assert session.device_name == "Kitchen tablet"
        assert session.transport.list_interval == 2.5

    def test_session_from_settings_builds_device_side(self, monkeypatch, tmp_path):
        from listsync.clients.record_store_client import HttpRecordStore
        from listsync.config import Settings
        from listsync.services.session_manager import SyncSession

        storage = tmp_path / "list.json"
        monkeypatch.setenv("STORE_URL", "http://store.local:9000/")
        monkeypatch.setenv("USER_ID", "alice")
        monkeypatch.setenv("REQUEST_TIMEOUT_SECONDS", "3.5")
        monkeypatch.setenv("LIST_STORAGE_PATH", str(storage))
        session = SyncSession.from_settings(Settings(_env_file=None))

        assert isinstance(session.store, HttpRecordStore)
        assert session.store.base_url == "http://store.local:9000"
        assert session.store.user_id == "alice"
        assert session.store.timeout == 3.5
        assert session.shopping_list.storage_path == str(storage)

        session.shopping_list.add_item("Milk")
        assert storage.exists()
