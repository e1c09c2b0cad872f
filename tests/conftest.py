import os

os.environ.setdefault("JWT_SECRET", "test-jwt-secret-0123456789abcdef")
os.environ.setdefault("SUPER_JWT_SECRET", "test-super-secret-fedcba9876543210")
os.environ.setdefault("PASSWORD_HASH_SALT", "test-salt")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("DEBUG_MODE", "true")

import pytest  # noqa: E402

from qrnr_api.app import create_app  # noqa: E402
from qrnr_shared.config import AppConfig  # noqa: E402
from qrnr_shared.db import dispose_engine  # noqa: E402
from qrnr_shared.jwt_service import issue_realm_token  # noqa: E402
from qrnr_shared.realtime.transport import InMemoryTransport  # noqa: E402
from qrnr_shared.services import store_service  # noqa: E402
from qrnr_shared.services.payment_providers import (  # noqa: E402
    PaymentError,
    PaymentProvider,
    PaymentResult,
)


class FakePaymentProvider(PaymentProvider):
    """Records calls; ``fail_with`` makes the next calls raise that PaymentError."""

    def __init__(self):
        self.confirmed = []
        self.cancelled = []
        self.fail_with: PaymentError | None = None

    def validate_configuration(self) -> bool:
        return True

    def confirm(self, payment_key, order_id, amount):
        if self.fail_with is not None:
            raise self.fail_with
        self.confirmed.append((payment_key, order_id, amount))
        return PaymentResult(
            payment_key=payment_key,
            order_id=order_id,
            amount=amount,
            status="DONE",
            method="카드",
            approved_at="2024-05-01T12:00:00+09:00",
            provider="fake",
            raw={},
        )

    def cancel(self, payment_key, reason):
        if self.fail_with is not None:
            raise self.fail_with
        self.cancelled.append((payment_key, reason))
        return PaymentResult(
            payment_key=payment_key,
            order_id="",
            amount=0,
            status="CANCELED",
            method=None,
            approved_at=None,
            provider="fake",
            raw={},
        )


def make_config(**overrides) -> AppConfig:
    values = dict(
        app_name="qrnr-test",
        database_url="sqlite://",
        jwt_secret=os.environ["JWT_SECRET"],
        super_jwt_secret=os.environ["SUPER_JWT_SECRET"],
        admin_token_ttl_seconds=3600,
        super_token_ttl_seconds=3600,
        cust_token_ttl_seconds=3600,
        payment_secret_key="test_sk",
        payment_api_url="https://payments.invalid/v1",
        redis_url="redis://localhost:6379/15",
        redis_channel_prefix="qrnr:store",
        rate_limit_enabled=False,
        rate_limit_max_requests=20,
        rate_limit_window_seconds=10,
        rate_limit_max_keys=1000,
        super_users=[{"id": "root", "pw": "rootpw", "name": "Root", "provider": "local"}],
        cust_users=[{"id": "guest", "pw": "guestpw", "name": "Guest", "provider": "local"}],
        log_level="WARNING",
        debug_mode=True,
        cookie_secure=False,
    )
    values.update(overrides)
    return AppConfig(**values)


@pytest.fixture
def config():
    return make_config()


@pytest.fixture
def transport():
    transport = InMemoryTransport()
    yield transport
    transport.close()


@pytest.fixture
def payment_provider():
    return FakePaymentProvider()


@pytest.fixture
def app(config, transport, payment_provider):
    dispose_engine()
    app = create_app(config, transport=transport, payment_provider=payment_provider)
    app.config["TESTING"] = True
    yield app
    dispose_engine()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def stores(app):
    """Two stores with one admin each: alice -> narae, bob -> haru."""
    for store_id, code in (("narae", "NARAE"), ("haru", "HARU")):
        store_service.create_store({"storeId": store_id, "code": code, "name": store_id.title()})
    store_service.register_admin({"id": "alice", "password": "alice-pw", "storeId": "narae"})
    store_service.register_admin({"id": "bob", "password": "bob-pw", "storeId": "haru"})
    return ("narae", "haru")


@pytest.fixture
def admin_headers(config, stores):
    def make(uid="alice", store_id="narae"):
        token = issue_realm_token("admin", {"sub": uid, "uid": uid, "storeId": store_id}, config)
        return {"Authorization": f"Bearer {token}"}

    return make


@pytest.fixture
def super_headers(config):
    token = issue_realm_token("super", {"sub": "root", "uid": "root", "storeId": None}, config)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def cust_headers(config):
    def make(store_id="narae"):
        token = issue_realm_token("cust", {"sub": "guest", "uid": "guest", "storeId": store_id}, config)
        return {"Authorization": f"Bearer {token}"}

    return make


@pytest.fixture
def place_order(client, stores):
    def place(store_id="narae", **fields):
        payload = {"storeId": store_id, "type": "store", "amount": 1500, "table": "3", **fields}
        return client.post("/api/orders", json=payload)

    return place
