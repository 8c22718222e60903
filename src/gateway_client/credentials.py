"""
Merchant credentials and per-currency gateway configuration.

Configuration is read from the environment exactly once, into immutable
objects that are then passed explicitly to the request builder, the
executor, and the batch runner.  Nothing below the runner reads
``os.environ`` itself.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field

from .config import (
    BASE_URL_ENV,
    CALLBACK_URL_ENV,
    CURRENCY_TABLE,
    ENV_VAR_TEMPLATES,
    SUPPORTED_CURRENCIES,
)
from .errors import ValidationError


def _mask(secret: str) -> str:
    if len(secret) <= 4:
        return "****"
    return f"{secret[:2]}…{secret[-2:]}"


@dataclass(frozen=True)
class Credential:
    """API key + secret key pair of one merchant account."""

    api_key: str
    secret_key: str

    def __post_init__(self) -> None:
        if not self.api_key or not self.secret_key:
            raise ValidationError("Credential requires a non-empty api_key and secret_key.")

    def __repr__(self) -> str:
        return f"Credential(api_key={_mask(self.api_key)!r}, secret_key={_mask(self.secret_key)!r})"


@dataclass(frozen=True)
class CurrencyConfig:
    """Everything needed to build and authenticate requests for one currency."""

    currency: str
    merchant_code: str
    credential: Credential
    base_url: str
    callback_url: str = ""
    deposit_method: str = ""
    payout_method: str = ""
    rules: Mapping[str, object] = field(default_factory=dict)

    def endpoint_url(self, path_template: str) -> str:
        """Join ``base_url`` with a path template from ``ENDPOINTS``."""
        path = path_template.format(merchant_code=self.merchant_code)
        return f"{self.base_url.rstrip('/')}{path}"


@dataclass(frozen=True)
class GatewayConfig:
    """Configured currencies for one gateway environment."""

    base_url: str
    callback_url: str
    currencies: Mapping[str, CurrencyConfig]

    def for_currency(self, currency: str) -> CurrencyConfig:
        """
        Look up a configured currency.

        Raises:
            ValidationError: Currency is unsupported or has no credentials.
        """
        code = currency.upper()
        if code not in SUPPORTED_CURRENCIES:
            raise ValidationError(
                f"Invalid currency '{currency}'. Available: {'/'.join(SUPPORTED_CURRENCIES)}"
            )
        if code not in self.currencies:
            raise ValidationError(
                f"No credentials configured for {code}. Set "
                f"{ENV_VAR_TEMPLATES['merchant_code'].format(currency=code)}, "
                f"{ENV_VAR_TEMPLATES['api_key'].format(currency=code)} and "
                f"{ENV_VAR_TEMPLATES['secret_key'].format(currency=code)}."
            )
        return self.currencies[code]


def load_currency_config(
    currency: str,
    environ: Mapping[str, str],
    base_url: str,
    callback_url: str = "",
) -> CurrencyConfig:
    """
    Build a :class:`CurrencyConfig` from environment variables.

    Args:
        currency: Upper-case currency code.
        environ: Environment mapping (``os.environ`` in production).
        base_url: Gateway base URL.
        callback_url: Merchant callback URL.

    Returns:
        Immutable currency configuration.

    Raises:
        ValidationError: Merchant code, API key, or secret key is unset.
    """
    values = {
        name: environ.get(template.format(currency=currency), "").strip()
        for name, template in ENV_VAR_TEMPLATES.items()
    }
    missing = [
        ENV_VAR_TEMPLATES[name].format(currency=currency)
        for name in ("merchant_code", "api_key", "secret_key")
        if not values[name]
    ]
    if missing:
        raise ValidationError(
            f"Missing configuration for {currency}: set {', '.join(missing)}."
        )

    return CurrencyConfig(
        currency=currency,
        merchant_code=values["merchant_code"],
        credential=Credential(api_key=values["api_key"], secret_key=values["secret_key"]),
        base_url=base_url,
        callback_url=callback_url,
        deposit_method=values["deposit_method"],
        payout_method=values["payout_method"],
        rules=dict(CURRENCY_TABLE[currency]),
    )


def load_gateway_config(environ: Mapping[str, str] | None = None) -> GatewayConfig:
    """
    Read the gateway configuration for every currency that has credentials.

    Currencies whose variables are partly or wholly unset are skipped; a
    later :meth:`GatewayConfig.for_currency` call for them raises
    :class:`ValidationError`.

    Args:
        environ: Environment mapping; defaults to ``os.environ``.

    Returns:
        :class:`GatewayConfig`.

    Raises:
        ValidationError: ``BASE_URL`` is unset.
    """
    env = os.environ if environ is None else environ
    base_url = env.get(BASE_URL_ENV, "").strip()
    if not base_url:
        raise ValidationError(
            f"Gateway base URL not found. Set the '{BASE_URL_ENV}' environment variable."
        )
    callback_url = env.get(CALLBACK_URL_ENV, "").strip()

    currencies: dict[str, CurrencyConfig] = {}
    for currency in SUPPORTED_CURRENCIES:
        try:
            currencies[currency] = load_currency_config(currency, env, base_url, callback_url)
        except ValidationError:
            continue

    return GatewayConfig(base_url=base_url, callback_url=callback_url, currencies=currencies)
