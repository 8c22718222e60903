"""
Unit tests for src/gateway_client/transport.py and src/gateway_client/executor.py.

``requests.request`` is patched throughout; no test opens a socket.
"""

from __future__ import annotations

import asyncio
import json
from unittest.mock import MagicMock, patch

import pytest
import requests

from src.auth.canonical import canonicalize
from src.auth.cipher import decrypt, decrypt_object
from src.auth.signer import sign, verify
from src.gateway_client.config import MERCHANT_CODE_HEADER
from src.gateway_client.errors import GatewayRejectedError, HttpError, NetworkError
from src.gateway_client.executor import (
    build_authenticated_request,
    execute_gateway_request,
    resolve_endpoint,
)
from src.gateway_client.transport import TransportResponse, send

from .conftest import BASE_URL, make_currency_config, make_http_response


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------

class TestSend:

    def test_returns_response_fields(self):
        with patch("requests.request", return_value=make_http_response(201, '{"a": 1}')) as mock_request:
            response = send("https://gw.test/x", "post", {"X": "1"}, '{"a":1}', timeout=5)

        assert response == TransportResponse(201, '{"a": 1}', {"Content-Type": "application/json"})
        assert response.ok
        args, kwargs = mock_request.call_args
        assert args == ("POST", "https://gw.test/x")
        assert kwargs["data"] == b'{"a":1}'
        assert kwargs["timeout"] == 5

    def test_non_2xx_returned_not_raised(self):
        with patch("requests.request", return_value=make_http_response(500, "err")):
            response = send("https://gw.test/x")
        assert not response.ok
        assert response.status == 500

    def test_timeout_becomes_network_error(self):
        with patch("requests.request", side_effect=requests.Timeout("slow")):
            with pytest.raises(NetworkError, match="timed out"):
                send("https://gw.test/x", timeout=1)

    def test_connection_error_becomes_network_error(self):
        with patch("requests.request", side_effect=requests.ConnectionError("refused")):
            with pytest.raises(NetworkError, match="refused"):
                send("https://gw.test/x")

    def test_session_used_when_given(self):
        session = MagicMock()
        session.request.return_value = make_http_response()
        send("https://gw.test/x", session=session)
        session.request.assert_called_once()


# ---------------------------------------------------------------------------
# Authenticated requests
# ---------------------------------------------------------------------------

class TestResolveEndpoint:

    def test_known(self):
        assert resolve_endpoint("deposit", "signed") == ("POST", "/api/{merchant_code}/v5/generateDeposit")

    def test_status_signed_only(self):
        with pytest.raises(ValueError, match="does not support"):
            resolve_endpoint("payout_status", "encrypted")

    def test_unknown_kind(self):
        with pytest.raises(ValueError, match="Unknown request kind"):
            resolve_endpoint("refund", "signed")


class TestBuildAuthenticatedRequest:

    def test_signed_deposit(self, inr_config):
        payload = {"transaction_code": "TEST-DP-1", "transaction_amount": 100, "currency_code": "INR"}
        request = build_authenticated_request("deposit", "signed", payload, inr_config)

        assert request.url == f"{BASE_URL}/api/M001/v5/generateDeposit"
        assert request.method == "POST"
        assert request.body == canonicalize(payload)
        assert request.headers["sign"] == sign(payload, "s1")
        assert verify(json.loads(request.body), request.headers["sign"], "s1")

    def test_encrypted_deposit_is_query_string(self, inr_config):
        payload = {"callback_url": "https://cb", "transaction_code": "TEST-DP-1", "transaction_amount": 100}
        request = build_authenticated_request("deposit", "encrypted", payload, inr_config)

        assert request.url == f"{BASE_URL}/api/M001/v3/dopayment"
        assert "sign" not in request.headers
        key = json.loads(request.body)["key"]
        assert decrypt(key, "k1", "s1") == "callback_url=https://cb&transaction_code=TEST-DP-1&transaction_amount=100"

    def test_encrypted_payout_is_canonical_json(self, inr_config):
        payload = {"transaction_code": "TEST-WD-1", "transaction_amount": "100"}
        request = build_authenticated_request("payout", "encrypted", payload, inr_config)

        assert request.url == f"{BASE_URL}/api/v1/payout/M001"
        assert decrypt_object(json.loads(request.body)["key"], "k1", "s1") == payload

    def test_encrypted_utr(self, inr_config):
        request = build_authenticated_request(
            "submit_utr", "encrypted", {"transaction_code": "T1", "utr": "123456789012"}, inr_config
        )
        assert request.url.endswith("/api/M001/v3/submit-utr")
        assert decrypt(json.loads(request.body)["key"], "k1", "s1") == "transaction_code=T1&utr=123456789012"

    def test_status_is_signed_get(self, inr_config):
        request = build_authenticated_request("payout_status", "signed", {"request_no": "R1"}, inr_config)
        assert request.method == "GET"
        assert request.body == '{"request_no":"R1"}'
        assert request.url.endswith("/v5/checkWDRequestStatus")

    def test_callback_is_plain_json(self, inr_config):
        payload = {"orderId": "TRX1", "amount": 100, "status": 0}
        request = build_authenticated_request("deposit_callback", "plain", payload, inr_config)
        assert request.url == f"{BASE_URL}/api/v2/payxyz/deposit/notification"
        assert request.headers == {"Content-Type": "application/json"}
        assert request.body == '{"amount":100,"orderId":"TRX1","status":0}'

    def test_create_customer_carries_encrypted_merchant_code(self):
        config = make_currency_config("KRW", merchant_code="KRW-01")
        request = build_authenticated_request("create_customer", "merchant_header",
                                              {"partnerType": "INDIVIDUAL"}, config)
        assert request.url == f"{BASE_URL}/KRW-01/v4/create-customer"
        assert decrypt(request.headers[MERCHANT_CODE_HEADER], "k1", "s1") == "KRW-01"
        assert "sign" not in request.headers
        assert json.loads(request.body) == {"partnerType": "INDIVIDUAL"}



# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------

class TestExecuteGatewayRequest:

    def _request(self, kind="deposit"):
        config = make_currency_config("INR")
        payload = {"request_no": "R1"} if kind == "payout_status" else {"transaction_code": "T1"}
        protocol = "signed"
        return build_authenticated_request(kind, protocol, payload, config), config

    def test_success(self):
        request, config = self._request()
        body = '{"status": "success", "transaction_no": "TRX1"}'
        with patch("requests.request", return_value=make_http_response(200, body)) as mock_request:
            result = asyncio.run(execute_gateway_request(request, config))

        assert result["transaction_no"] == "TRX1"
        args, kwargs = mock_request.call_args
        assert args == ("POST", request.url)
        assert kwargs["headers"]["sign"] == request.headers["sign"]
        assert kwargs["data"] == request.body.encode("utf-8")

    def test_deposit_status_failed_is_rejection(self):
        request, config = self._request()
        body = '{"status": "failed", "message": "Duplicate transaction"}'
        with patch("requests.request", return_value=make_http_response(200, body)):
            with pytest.raises(GatewayRejectedError, match="Duplicate transaction"):
                asyncio.run(execute_gateway_request(request, config))

    def test_status_lookup_does_not_require_success(self):
        request, config = self._request("payout_status")
        body = '{"status": "pending", "request_no": "R1"}'
        with patch("requests.request", return_value=make_http_response(200, body)):
            result = asyncio.run(execute_gateway_request(request, config))
        assert result["status"] == "pending"

    def test_http_error(self):
        request, config = self._request()
        with patch("requests.request", return_value=make_http_response(503, "Service Unavailable")):
            with pytest.raises(HttpError):
                asyncio.run(execute_gateway_request(request, config))

    def test_network_error(self):
        request, config = self._request()
        with patch("requests.request", side_effect=requests.ConnectionError("reset")):
            with pytest.raises(NetworkError):
                asyncio.run(execute_gateway_request(request, config))

    def test_callback_accepts_plain_text_reply(self):
        config = make_currency_config("INR")
        request = build_authenticated_request("payout_callback", "plain", {"orderId": "WD1"}, config)
        with patch("requests.request", return_value=make_http_response(200, "OK")):
            result = asyncio.run(execute_gateway_request(request, config))
        assert result == {"body_text": "OK"}
