"""
Tests for the command-line runner (src/gateway_client/runner.py).

The environment is injected as a dict and HTTP is patched, so the CLI runs
end to end without network access or real credentials.
"""

from __future__ import annotations

import json
from unittest.mock import patch

import pytest

from src.auth.cipher import encrypt
from src.auth.signer import sign
from src.gateway_client import runner
from src.gateway_client.runner import EXIT_FAILURES, EXIT_INVALID, EXIT_OK, build_parser, main

from .conftest import make_http_response


@pytest.fixture(autouse=True)
def no_failed_log(tmp_path, monkeypatch):
    """Keep the failed-call log out of the project tree."""
    monkeypatch.setattr(runner, "FAILED_CALLS_LOG", tmp_path / "failed.jsonl")


class TestParser:

    def test_deposit_defaults(self):
        args = build_parser().parse_args(["deposit", "--currency", "INR", "--amount", "100"])
        assert args.count == 1
        assert args.protocol == "signed"
        assert args.concurrency == 10

    def test_protocol_choices(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["deposit", "--currency", "INR", "--protocol", "v9"])


class TestBatchCommands:

    def test_deposit_success(self, gateway_environ, capsys):
        response = make_http_response(200, json.dumps({"status": "success"}))
        with patch("requests.request", return_value=response) as mock_request:
            code = main(["deposit", "--currency", "VND", "--count", "3", "--amount", "100",
                         "--delay", "0", "--quiet"], environ=gateway_environ)

        assert code == EXIT_OK
        assert mock_request.call_count == 3
        assert "BATCH COMPLETE" in capsys.readouterr().out

    def test_failures_give_exit_code_1(self, gateway_environ, tmp_path):
        response = make_http_response(200, json.dumps({"status": "failed", "message": "no"}))
        export_path = tmp_path / "out.csv"
        with patch("requests.request", return_value=response):
            code = main(["payout", "--currency", "VND", "--amount", "100", "--quiet",
                         "--export", str(export_path)], environ=gateway_environ)

        assert code == EXIT_FAILURES
        assert export_path.exists()

    def test_missing_amount_is_invalid(self, gateway_environ, capsys):
        code = main(["deposit", "--currency", "INR"], environ=gateway_environ)
        assert code == EXIT_INVALID
        assert "ERROR:" in capsys.readouterr().err

    def test_unconfigured_currency_is_invalid(self, gateway_environ):
        code = main(["deposit", "--currency", "BDT", "--amount", "1"], environ=gateway_environ)
        assert code == EXIT_INVALID

    def test_missing_base_url_is_invalid(self):
        code = main(["status", "--currency", "INR", "R1"], environ={})
        assert code == EXIT_INVALID


class TestAuthCommands:

    def test_sign_json(self, capsys):
        code = main(["sign", "--secret-key", "s1", '{"currency": "INR", "amount": 100}'])
        assert code == EXIT_OK
        assert capsys.readouterr().out.strip() == sign({"amount": 100, "currency": "INR"}, "s1")

    def test_sign_raw(self, capsys):
        main(["sign", "--secret-key", "s1", "--raw", "hello"])
        assert capsys.readouterr().out.strip() == sign("hello", "s1")

    def test_sign_invalid_json(self):
        assert main(["sign", "--secret-key", "s1", "{not json"]) == EXIT_INVALID

    def test_sign_with_currency_keys(self, gateway_environ, capsys):
        main(["sign", "--currency", "INR", '{"a": 1}'], environ=gateway_environ)
        assert capsys.readouterr().out.strip() == sign({"a": 1}, "secret-inr")

    def test_encrypt_and_decrypt(self, capsys):
        main(["encrypt", "--api-key", "k1", "--secret-key", "s1", "a=1&b=2"])
        cipher_text = capsys.readouterr().out.strip()
        assert cipher_text == encrypt("a=1&b=2", "k1", "s1")

        main(["encrypt", "--api-key", "k1", "--secret-key", "s1", "--decrypt", cipher_text])
        assert capsys.readouterr().out.strip() == "a=1&b=2"

    def test_encrypt_requires_api_key(self):
        assert main(["encrypt", "--secret-key", "s1", "text"]) == EXIT_INVALID

    def test_decrypt_garbage_is_invalid(self):
        assert main(["encrypt", "--api-key", "k1", "--secret-key", "s1", "--decrypt", "@@@"]) == EXIT_INVALID


class TestCallbackCommands:

    def test_callback_batch(self, gateway_environ):
        with patch("requests.request", return_value=make_http_response(200, "OK")) as mock_request:
            code = main(["callback", "--currency", "INR", "DP1001:100", "WD1002:50.5",
                         "--success-rate", "1", "--delay", "0", "--quiet"], environ=gateway_environ)

        assert code == EXIT_OK
        urls = sorted(call.args[1] for call in mock_request.call_args_list)
        assert urls == [
            "https://gateway.test/api/v2/payxyz/deposit/notification",
            "https://gateway.test/api/v2/payxyz/payout/notification",
        ]

    def test_callback_needs_number_and_amount(self, gateway_environ):
        code = main(["callback", "--currency", "INR", "DP1001"], environ=gateway_environ)
        assert code == EXIT_INVALID

    def test_deposit_with_callback(self, gateway_environ):
        response = make_http_response(200, json.dumps({"status": "success", "transaction_no": "TRX1"}))
        with patch("requests.request", return_value=response) as mock_request:
            code = main(["deposit", "--currency", "VND", "--count", "2", "--amount", "100",
                         "--callback", "--delay", "0", "--quiet"], environ=gateway_environ)

        assert code == EXIT_OK
        urls = [call.args[1] for call in mock_request.call_args_list]
        assert sum(url.endswith("/deposit/notification") for url in urls) == 2


class TestCreateCustomerFlag:

    @pytest.fixture
    def krw_environ(self, gateway_environ):
        return {**gateway_environ, "MERCHANT_CODE_KRW": "M-KRW",
                "MERCHANT_API_KEY_KRW": "api-krw", "SECRET_KEY_KRW": "secret-krw"}

    def test_deposit_uses_created_user_id(self, krw_environ, capsys):
        def gateway(method, url, headers=None, data=None, timeout=None):
            if url.endswith("/M-KRW/v4/create-customer"):
                return make_http_response(200, json.dumps({"success": True, "data": {"user_id": "U-9"}}))
            return make_http_response(200, json.dumps({"status": "success"}))

        with patch("requests.request", side_effect=gateway) as mock_request:
            code = main(["deposit", "--currency", "KRW", "--amount", "10000", "--bank-code", "KB",
                         "--create-customer", "--quiet"], environ=krw_environ)

        assert code == EXIT_OK
        assert "user_id=U-9" in capsys.readouterr().out
        deposit_call = mock_request.call_args_list[-1]
        assert json.loads(deposit_call.kwargs["data"])["user_id"] == "U-9"

    def test_failed_registration_sends_no_deposit(self, krw_environ, capsys):
        response = make_http_response(200, json.dumps({"success": False, "message": "Blocked"}))
        with patch("requests.request", return_value=response) as mock_request:
            code = main(["deposit", "--currency", "KRW", "--amount", "10000", "--bank-code", "KB",
                         "--create-customer"], environ=krw_environ)

        assert code == EXIT_FAILURES
        assert mock_request.call_count == 1
        assert "Blocked" in capsys.readouterr().err

    def test_other_currencies_rejected(self, gateway_environ):
        code = main(["deposit", "--currency", "INR", "--amount", "100", "--create-customer"],
                    environ=gateway_environ)
        assert code == EXIT_INVALID
