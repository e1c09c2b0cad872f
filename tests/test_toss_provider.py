from unittest.mock import MagicMock, patch

import pytest
import requests

from qrnr_shared.services.payment_providers import PaymentError, TossProvider


def _response(status, body):
    response = MagicMock()
    response.status_code = status
    response.ok = 200 <= status < 300
    response.json.return_value = body
    return response


@patch("qrnr_shared.services.payment_providers.toss_provider.requests.post")
def test_confirm_posts_with_basic_auth(mock_post):
    mock_post.return_value = _response(
        200,
        {"paymentKey": "pk", "orderId": "T-1", "totalAmount": 1500, "status": "DONE", "method": "카드"},
    )
    result = TossProvider("sk_test", "https://api.example.com/v1/").confirm("pk", "T-1", 1500)

    args, kwargs = mock_post.call_args
    assert args[0] == "https://api.example.com/v1/payments/confirm"
    assert kwargs["auth"] == ("sk_test", "")
    assert kwargs["json"] == {"paymentKey": "pk", "orderId": "T-1", "amount": 1500}
    assert result.amount == 1500
    assert result.method == "카드"
    assert result.provider == "toss"


@patch("qrnr_shared.services.payment_providers.toss_provider.requests.post")
def test_provider_rejection_keeps_status_and_body(mock_post):
    body = {"code": "ALREADY_PROCESSED_PAYMENT", "message": "이미 처리된 결제 입니다."}
    mock_post.return_value = _response(400, body)

    with pytest.raises(PaymentError) as exc_info:
        TossProvider("sk_test").confirm("pk", "T-1", 1500)

    assert exc_info.value.status_code == 400
    assert exc_info.value.body == body
    assert exc_info.value.provider_code == "ALREADY_PROCESSED_PAYMENT"
    assert exc_info.value.message == "이미 처리된 결제 입니다."


@patch("qrnr_shared.services.payment_providers.toss_provider.requests.post")
def test_timeout_maps_to_504(mock_post):
    mock_post.side_effect = requests.exceptions.Timeout()
    with pytest.raises(PaymentError) as exc_info:
        TossProvider("sk_test").cancel("pk", "고객 요청")
    assert exc_info.value.status_code == 504


def test_missing_secret_key_fails_before_network():
    with patch("qrnr_shared.services.payment_providers.toss_provider.requests.post") as mock_post:
        with pytest.raises(PaymentError) as exc_info:
            TossProvider("").confirm("pk", "T-1", 1500)
    assert exc_info.value.status_code == 500
    mock_post.assert_not_called()


@patch("qrnr_shared.services.payment_providers.toss_provider.requests.post")
def test_connection_error_hides_transport_details(mock_post):
    mock_post.side_effect = requests.exceptions.ConnectionError(
        "HTTPSConnectionPool(host='10.0.0.7', port=443): Max retries exceeded"
    )
    with pytest.raises(PaymentError) as exc_info:
        TossProvider("sk_test").confirm("pk", "T-1", 1500)

    assert exc_info.value.status_code == 502
    assert exc_info.value.message == "결제 서버에 연결할 수 없습니다."
    assert "10.0.0.7" not in str(exc_info.value)
