"""
Standardized country and currency code mappings for providers.
Uses ISO-3166-1 alpha-2 and alpha-3 for countries and ISO-4217 for currencies.
"""
from typing import Optional

# ISO-3166-1 alpha-3 to alpha-2 mapping
ISO_ALPHA3_TO_ALPHA2 = {
    "USA": "US",
    "GBR": "GB",
    "CAN": "CA",
    "AUS": "AU",
    "DEU": "DE",
    "FRA": "FR",
    "ESP": "ES",
    "ITA": "IT",
    "NLD": "NL",
    "IRL": "IE",
    "IND": "IN",
    "PHL": "PH",
    "MEX": "MX",
    "KEN": "KE",
    "GHA": "GH",
    "NGA": "NG",
    "PAK": "PK",
    "BGD": "BD",
    "VNM": "VN",
    "COL": "CO",
}

ISO_ALPHA2_TO_ALPHA3 = {alpha2: alpha3 for alpha3, alpha2 in ISO_ALPHA3_TO_ALPHA2.items()}

# Home country used when a corridor has to be inferred from a currency alone
CURRENCY_HOME_COUNTRY = {
    "USD": "US",
    "GBP": "GB",
    "EUR": "DE",
    "CAD": "CA",
    "AUD": "AU",
    "INR": "IN",
    "PHP": "PH",
    "MXN": "MX",
    "KES": "KE",
    "GHS": "GH",
    "NGN": "NG",
}


def normalize_country_code(country_code: str) -> str:
    """
    Normalize a country code to ISO-3166-1 alpha-2 format.

    Args:
        country_code: A country code in alpha-2 or alpha-3 form

    Returns:
        The alpha-2 code, or the upper-cased input if no mapping is known
    """
    if not country_code:
        return ""

    country_code = country_code.strip().upper()
    if len(country_code) == 3 and country_code in ISO_ALPHA3_TO_ALPHA2:
        return ISO_ALPHA3_TO_ALPHA2[country_code]
    return country_code


def to_alpha3(country_code: str) -> Optional[str]:
    """Convert an alpha-2 (or alpha-3) country code to alpha-3."""
    return ISO_ALPHA2_TO_ALPHA3.get(normalize_country_code(country_code))


def get_home_country_for_currency(currency_code: str) -> Optional[str]:
    """Get the alpha-2 country most associated with a currency."""
    return CURRENCY_HOME_COUNTRY.get(str(currency_code).upper())
