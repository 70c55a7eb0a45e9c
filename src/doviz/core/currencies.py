from __future__ import annotations

import re

_CODE_RE = re.compile(r"^[A-Z]{3}$")

CURRENCY_NAMES: dict[str, str] = {
    "USD": "US Dollar",
    "EUR": "Euro",
    "GBP": "British Pound",
    "JPY": "Japanese Yen",
    "CHF": "Swiss Franc",
    "CAD": "Canadian Dollar",
    "AUD": "Australian Dollar",
    "CNY": "Chinese Yuan",
    "RUB": "Russian Ruble",
    "TRY": "Turkish Lira",
}

# Country code used for flag images (flagcdn.com).
CURRENCY_FLAGS: dict[str, str] = {
    "USD": "us",
    "EUR": "eu",
    "GBP": "gb",
    "JPY": "jp",
    "CHF": "ch",
    "CAD": "ca",
    "AUD": "au",
    "CNY": "cn",
    "RUB": "ru",
    "TRY": "tr",
    "INR": "in",
    "BRL": "br",
    "ZAR": "za",
    "MXN": "mx",
    "SGD": "sg",
    "NZD": "nz",
    "SEK": "se",
    "NOK": "no",
    "DKK": "dk",
    "HKD": "hk",
    "KRW": "kr",
    "PLN": "pl",
    "THB": "th",
    "ILS": "il",
    "CZK": "cz",
    "HUF": "hu",
    "IDR": "id",
    "MYR": "my",
    "PHP": "ph",
    "AED": "ae",
    "CLP": "cl",
    "COP": "co",
    "EGP": "eg",
    "HRK": "hr",
    "ISK": "is",
    "KWD": "kw",
    "MAD": "ma",
    "PEN": "pe",
    "QAR": "qa",
    "RON": "ro",
    "SAR": "sa",
    "TWD": "tw",
    "UAH": "ua",
    "VND": "vn",
}


def normalize_currency(value: str | None) -> str | None:
    if not value:
        return None
    code = value.strip().upper()
    if not _CODE_RE.match(code):
        return None
    return code


def currency_name(code: str) -> str:
    return CURRENCY_NAMES.get(code, code)


def flag_code(code: str) -> str:
    return CURRENCY_FLAGS.get(code, "")
