import pytest

from qrnr_shared.errors import (
    AuthForbiddenError,
    ConflictError,
    NotFoundError,
    RateLimitedError,
    UpstreamError,
    ValidationError,
)
from qrnr_shared.permissions import ROUTE_POLICIES, Access


@pytest.mark.parametrize(
    "error, status, code",
    [
        (ValidationError(), 400, "VALIDATION_ERROR"),
        (AuthForbiddenError(), 403, "AUTH_FORBIDDEN"),
        (NotFoundError(), 404, "NOT_FOUND"),
        (ConflictError(), 409, "CONFLICT"),
        (RateLimitedError(3), 429, "RATE_LIMITED"),
        (UpstreamError(), 500, "UPSTREAM_FAILURE"),
    ],
)
def test_error_status_and_code(error, status, code):
    assert error.status == status
    body = error.to_dict()
    assert body["code"] == code
    assert body["status"] == "error"
    assert body["data"] is None
    assert body["error"]


def test_detail_code_keeps_category():
    body = ConflictError("이미 존재", detail_code="MAPPING_EXISTS").to_dict()
    assert body["code"] == "MAPPING_EXISTS"
    assert body["category"] == "CONFLICT"


def test_retryable_flag_only_when_set():
    assert "retryable" not in ConflictError().to_dict()
    assert ConflictError(retryable=True).to_dict()["retryable"] is True


def test_unexpected_exception_becomes_generic_500(app, client, monkeypatch):
    monkeypatch.setitem(ROUTE_POLICIES, ("GET", "boom"), Access.PUBLIC)

    @app.get("/boom")
    def boom():
        raise RuntimeError("secret internals")

    response = client.get("/boom")
    assert response.status_code == 500
    body = response.get_json()
    assert body["code"] == "UPSTREAM_FAILURE"
    assert "secret internals" not in body["error"]
