import hashlib
import hmac
import json
from unittest.mock import Mock, patch

import pytest
import requests

from datagod.providers import (
    CodeCraftProvider,
    DataKazinaProvider,
    FulfillmentRequest,
    MTNProvider,
    classify_provider_status,
)
from datagod.providers.mtn import compute_webhook_signature, verify_webhook_signature


def _response(status_code=200, body=None, raw=None):
    r = Mock()
    r.status_code = status_code
    r.content = raw if raw is not None else json.dumps(body or {}).encode("utf-8")
    return r


def _request(**kw):
    fields = dict(order_id=42, phone="0241234567", network="AT", volume_gb=2.0, reference="42")
    fields.update(kw)
    return FulfillmentRequest(**fields)


class TestClassifyProviderStatus:
    @pytest.mark.parametrize("text, expected", [
        ("Successful", "completed"),
        ("Delivered", "completed"),
        ("Order completed", "completed"),
        ("Order Failed - Cancelled", "failed"),
        ("Rejected by network", "failed"),
        ("Refunded", "failed"),
        ("Unsuccessful", "failed"),
        ("ERROR", "failed"),
        ("", "processing"),
        (None, "processing"),
        ("Pending Network Response", "processing"),
        ("Queued", "processing"),
    ])
    def test_mapping(self, text, expected):
        assert classify_provider_status(text) == expected


class TestCodeCraftProvider:
    @pytest.fixture
    def provider(self, app):
        app.config["CODECRAFT_API_URL"] = "https://codecraft.test/api/"
        app.config["CODECRAFT_API_KEY"] = "agent-key"
        app.config["PROVIDER_TIMEOUT_SECONDS"] = 7
        return CodeCraftProvider()

    @patch("datagod.providers.base.requests.post")
    def test_initiate_success(self, mock_post, provider):
        mock_post.return_value = _response(200, {"status": 200, "message": "Order placed"})

        result = provider.initiate(_request())

        assert result.ok
        assert result.reference == "42"
        url = mock_post.call_args.args[0]
        kwargs = mock_post.call_args.kwargs
        assert url == "https://codecraft.test/api/initiate.php"
        assert kwargs["json"] == {
            "agent_api": "agent-key",
            "recipient_number": "0241234567",
            "network": "AT",
            "gig": "2",
            "reference_id": "42",
        }
        assert kwargs["timeout"] == 7.0

    @patch("datagod.providers.base.requests.post")
    def test_initiate_big_time_endpoint(self, mock_post, provider):
        mock_post.return_value = _response(200, {"status": 200})
        provider.initiate(_request(big_time=True))
        assert mock_post.call_args.args[0].endswith("/initiate_big_time.php")

    @pytest.mark.parametrize("code, message", [
        (100, "Admin wallet balance is low"),
        (101, "Service out of stock"),
        (102, "Agent not found"),
        (103, "Price not found"),
        (555, "Network not found"),
    ])
    @patch("datagod.providers.base.requests.post")
    def test_initiate_error_codes(self, mock_post, provider, code, message):
        mock_post.return_value = _response(200, {"status": code})
        result = provider.initiate(_request())
        assert not result.ok
        assert result.error == message
        assert result.error_code == f"CODE_{code}"

    @patch("datagod.providers.base.requests.post")
    def test_initiate_noisy_body_still_accepted(self, mock_post, provider):
        mock_post.return_value = _response(200, raw=b'<b>Notice</b> {"status": 200, "message": "ok"}')
        assert provider.initiate(_request()).ok

    @patch("datagod.providers.base.requests.post")
    def test_initiate_unparseable_body_is_failure(self, mock_post, provider):
        mock_post.return_value = _response(200, raw=b"<html>Bad Gateway</html>")
        result = provider.initiate(_request())
        assert not result.ok
        assert result.error_code == "INVALID_RESPONSE"

    @patch("datagod.providers.base.requests.post")
    def test_initiate_non_200_is_failure(self, mock_post, provider):
        mock_post.return_value = _response(500, {"status": 200})
        assert not provider.initiate(_request()).ok

    @patch("datagod.providers.base.requests.post", side_effect=requests.Timeout("slow"))
    def test_initiate_timeout_is_failure(self, mock_post, provider):
        result = provider.initiate(_request())
        assert not result.ok
        assert result.error_code == "REQUEST_FAILED"
        assert result.error == "timeout"

    @patch("datagod.providers.base.requests.post")
    def test_verify_successful(self, mock_post, provider):
        mock_post.return_value = _response(200, {
            "status": "success",
            "code": 200,
            "order_details": {"order_status": "Successful"},
        })
        verdict = provider.verify("42")
        assert verdict.status == "completed"
        assert mock_post.call_args.args[0].endswith("/response_regular.php")
        assert mock_post.call_args.kwargs["json"] == {"reference_id": "42", "agent_api": "agent-key"}

    @patch("datagod.providers.base.requests.post")
    def test_verify_big_time_endpoint(self, mock_post, provider):
        mock_post.return_value = _response(200, {
            "status": "success",
            "code": 200,
            "order_details": {"order_status": "Order Failed - Cancelled"},
        })
        verdict = provider.verify("42", big_time=True)
        assert verdict.status == "failed"
        assert mock_post.call_args.args[0].endswith("/response_big_time.php")

    @patch("datagod.providers.base.requests.post")
    def test_verify_lookup_miss_is_processing(self, mock_post, provider):
        mock_post.return_value = _response(200, {"status": "error", "code": 404, "message": "not found"})
        assert provider.verify("42").status == "processing"

    @patch("datagod.providers.base.requests.post", side_effect=requests.ConnectionError("down"))
    def test_verify_transport_error_is_processing(self, mock_post, provider):
        assert provider.verify("42").status == "processing"


class TestMTNProvider:
    @pytest.fixture
    def provider(self, app):
        app.config["MTN_API_BASE_URL"] = "https://mtn.test"
        app.config["MTN_API_KEY"] = "mtn-key"
        return MTNProvider()

    @patch("datagod.providers.base.requests.post")
    def test_initiate_success(self, mock_post, provider):
        mock_post.return_value = _response(200, {"success": True, "order_id": 9911, "message": "created"})

        result = provider.initiate(_request(network="MTN", volume_gb=5.0))

        assert result.ok
        assert result.external_id == "9911"
        assert mock_post.call_args.args[0] == "https://mtn.test/api/orders"
        kwargs = mock_post.call_args.kwargs
        assert kwargs["headers"]["X-API-KEY"] == "mtn-key"
        assert kwargs["json"] == {"recipient_phone": "0241234567", "network": "MTN", "size_gb": 5.0, "reference": "42"}

    @patch("datagod.providers.base.requests.post")
    def test_initiate_rejected(self, mock_post, provider):
        mock_post.return_value = _response(400, {"success": False, "message": "Insufficient balance"})
        result = provider.initiate(_request(network="MTN"))
        assert not result.ok
        assert result.error == "Insufficient balance"

    @patch("datagod.providers.base.requests.post")
    def test_initiate_success_false_with_200(self, mock_post, provider):
        mock_post.return_value = _response(200, {"success": False, "message": "Invalid phone"})
        assert not provider.initiate(_request(network="MTN")).ok

    @patch("datagod.providers.base.requests.post")
    def test_verify_reads_order_status(self, mock_post, provider):
        mock_post.return_value = _response(200, {"order": {"id": 9911, "status": "completed"}})
        verdict = provider.verify("42")
        assert verdict.status == "completed"
        assert mock_post.call_args.args[0] == "https://mtn.test/api/orders/status"
        assert mock_post.call_args.kwargs["json"] == {"reference_id": "42"}

    @patch("datagod.providers.base.requests.post")
    def test_verify_http_error_is_processing(self, mock_post, provider):
        mock_post.return_value = _response(404, {"status": "error"})
        assert provider.verify("42").status == "processing"

    @pytest.mark.parametrize("body, expected", [
        ({"success": True, "order": "MTN-77"}, "MTN-77"),
        ({"success": True, "order": {"id": 501}}, "501"),
        ({"success": True, "order": None}, ""),
    ])
    @patch("datagod.providers.base.requests.post")
    def test_initiate_order_field_shapes(self, mock_post, provider, body, expected):
        mock_post.return_value = _response(200, body)
        result = provider.initiate(_request(network="MTN"))
        assert result.ok
        assert result.external_id == expected

    @patch("datagod.providers.base.requests.get")
    def test_check_balance(self, mock_get, provider):
        mock_get.return_value = _response(200, {"success": True, "balance": "1250.50"})
        assert provider.check_balance() == 1250.5
        assert mock_get.call_args.args[0] == "https://mtn.test/api/balance"
        assert mock_get.call_args.kwargs["headers"]["X-API-KEY"] == "mtn-key"

    @pytest.mark.parametrize("status_code, body", [
        (200, {"success": False, "message": "unauthorised"}),
        (500, {"error": "down"}),
        (200, {"success": True}),
    ])
    @patch("datagod.providers.base.requests.get")
    def test_check_balance_unavailable(self, mock_get, provider, status_code, body):
        mock_get.return_value = _response(status_code, body)
        assert provider.check_balance() is None


class TestDataKazinaProvider:
    @pytest.fixture
    def provider(self, app):
        app.config["DATAKAZINA_API_URL"] = "https://kazina.test/api/v1/"
        app.config["DATAKAZINA_API_KEY"] = "dk-key"
        return DataKazinaProvider()

    @patch("datagod.providers.base.requests.post")
    def test_initiate_success(self, mock_post, provider):
        mock_post.return_value = _response(200, {"success": True, "transaction_id": "TX-9"})

        result = provider.initiate(_request(network="MTN", volume_gb=3.0))

        assert result.ok
        assert result.external_id == "TX-9"
        assert mock_post.call_args.args[0] == "https://kazina.test/api/v1/buy-data-package"
        kwargs = mock_post.call_args.kwargs
        assert kwargs["headers"]["x-api-key"] == "dk-key"
        assert kwargs["json"] == {
            "recipient_msisdn": "0241234567",
            "network_id": 3,
            "shared_bundle": 3.0,
            "incoming_api_ref": "42",
        }

    @patch("datagod.providers.base.requests.post")
    def test_initiate_without_transaction_id_uses_reference(self, mock_post, provider):
        mock_post.return_value = _response(200, {"success": True})
        assert provider.initiate(_request(network="MTN")).external_id == "42"

    @pytest.mark.parametrize("status_code, body", [
        (400, {"message": "bad request"}),
        (200, {"success": False, "message": "Insufficient balance"}),
        (200, {"status": "error", "message": "Invalid number"}),
        (200, {"error": "Bundle unavailable"}),
    ])
    @patch("datagod.providers.base.requests.post")
    def test_initiate_rejections(self, mock_post, provider, status_code, body):
        mock_post.return_value = _response(status_code, body)
        result = provider.initiate(_request(network="MTN"))
        assert not result.ok
        assert result.error

    @patch("datagod.providers.base.requests.post")
    def test_initiate_unknown_network_makes_no_call(self, mock_post, provider):
        result = provider.initiate(_request(network="GLO"))
        assert result.error_code == "UNSUPPORTED_NETWORK"
        mock_post.assert_not_called()

    @pytest.mark.parametrize("body, expected", [
        ({"transaction": {"status": "completed"}}, "completed"),
        ({"data": {"status": "failed"}}, "failed"),
        ({"status": "pending"}, "processing"),
    ])
    @patch("datagod.providers.base.requests.post")
    def test_verify_reads_transaction_status(self, mock_post, provider, body, expected):
        mock_post.return_value = _response(200, body)
        assert provider.verify("TX-9").status == expected
        assert mock_post.call_args.args[0] == "https://kazina.test/api/v1/fetch-single-transaction"
        assert mock_post.call_args.kwargs["json"] == {"transaction_id": "TX-9"}

    def test_polls_by_transaction_id(self, provider):
        assert provider.status_reference("42", "TX-9") == "TX-9"
        assert provider.status_reference("42", None) == "42"

    @patch("datagod.providers.base.requests.get")
    def test_check_balance_reads_wallet_balance(self, mock_get, provider):
        mock_get.return_value = _response(200, {"Wallet Balance": "GHS 830.25"})
        assert provider.check_balance() == 830.25
        assert mock_get.call_args.args[0] == "https://kazina.test/api/v1/check-console-balance"


class TestMTNWebhookSignature:
    def test_prefixed_and_bare_digests(self, app):
        body = b'{"event":"order.completed","order":{"id":"9911"}}'
        expected = hmac.new(b"hook-secret", body, hashlib.sha256).hexdigest()
        assert compute_webhook_signature(body, "hook-secret") == f"sha256={expected}"
        assert verify_webhook_signature(body, f"sha256={expected}", "hook-secret")
        assert verify_webhook_signature(body, expected.upper(), "hook-secret")

    def test_rejects_tampered_body_and_missing_secret(self, app):
        body = b'{"event":"order.completed"}'
        sig = compute_webhook_signature(body, "hook-secret")
        assert not verify_webhook_signature(body + b" ", sig, "hook-secret")
        assert not verify_webhook_signature(body, None, "hook-secret")
        assert not verify_webhook_signature(body, sig, "")

    def test_falls_back_to_api_key(self, app):
        app.config["MTN_WEBHOOK_SECRET"] = ""
        app.config["MTN_API_KEY"] = "mtn-key"
        body = b"{}"
        assert verify_webhook_signature(body, compute_webhook_signature(body, "mtn-key"))
