"""Currency table and display formatting for company-level amounts."""

DEFAULT_CURRENCY = "USD"

CURRENCIES = {
    "USD": {"code": "USD", "symbol": "$", "name": "US Dollar", "locale": "en-US", "decimals": 2},
    "CAD": {"code": "CAD", "symbol": "CA$", "name": "Canadian Dollar", "locale": "en-CA", "decimals": 2},
    "EUR": {"code": "EUR", "symbol": "€", "name": "Euro", "locale": "de-DE", "decimals": 2},
    "GBP": {"code": "GBP", "symbol": "£", "name": "British Pound", "locale": "en-GB", "decimals": 2},
    "AUD": {"code": "AUD", "symbol": "A$", "name": "Australian Dollar", "locale": "en-AU", "decimals": 2},
    "NGN": {"code": "NGN", "symbol": "₦", "name": "Nigerian Naira", "locale": "en-NG", "decimals": 2},
    "KES": {"code": "KES", "symbol": "KSh", "name": "Kenyan Shilling", "locale": "en-KE", "decimals": 2},
}

# locales that group with "." and mark decimals with ",", symbol trailing
_SUFFIX_LOCALES = {"de-DE"}


def get_currency(code: str | None) -> dict:
    if code and code.upper() in CURRENCIES:
        return CURRENCIES[code.upper()]
    return CURRENCIES[DEFAULT_CURRENCY]


def get_currency_symbol(code: str | None) -> str:
    return get_currency(code)["symbol"]


def is_supported_currency(code: str | None) -> bool:
    return bool(code) and code.upper() in CURRENCIES


def supported_currencies() -> list[dict]:
    return list(CURRENCIES.values())


def _compact(value: float) -> str:
    for threshold, suffix in ((1_000_000_000, "B"), (1_000_000, "M"), (1_000, "K")):
        if value >= threshold:
            return f"{value / threshold:.1f}".rstrip("0").rstrip(".") + suffix
    return f"{value:.0f}"


def format_currency(amount, code: str | None = None, show_decimals: bool = True, compact: bool = False) -> str:
    currency = get_currency(code)
    value = float(amount or 0)
    sign = "-" if value < 0 else ""
    value = abs(value)

    if compact and value >= 1000:
        body = _compact(value)
    else:
        decimals = currency["decimals"] if show_decimals else 0
        body = f"{value:,.{decimals}f}"
        if currency["locale"] in _SUFFIX_LOCALES:
            body = body.replace(",", "\x00").replace(".", ",").replace("\x00", ".")

    if currency["locale"] in _SUFFIX_LOCALES:
        return f"{sign}{body} {currency['symbol']}"
    return f"{sign}{currency['symbol']}{body}"
