"""
Country code normalization.

SendCloud only accepts ISO 3166-1 alpha-2 codes, while orders arrive with
whatever the customer or staff typed ("United Kingdom", "uk", "FR").
Lookup is exact against a static table; there is no fuzzy matching.
"""
import re
from typing import Dict, List, Optional, Tuple

# code -> (display name, uppercased aliases)
COUNTRY_MAPPING: Dict[str, Tuple[str, List[str]]] = {
    "US": ("USA", ["USA", "UNITED STATES", "UNITED STATES OF AMERICA"]),
    "GB": ("UK", ["UK", "UNITED KINGDOM", "GREAT BRITAIN"]),
    "FR": ("France", ["FRANCE"]),
    "DE": ("Germany", ["GERMANY"]),
    "NL": ("Netherlands", ["NETHERLANDS", "THE NETHERLANDS", "HOLLAND"]),
    "IT": ("Italy", ["ITALY"]),
    "CA": ("Canada", ["CANADA"]),
    "AU": ("Australia", ["AUSTRALIA"]),

    # Rest of Europe
    "AD": ("Andorra", ["ANDORRA"]),
    "AL": ("Albania", ["ALBANIA"]),
    "AT": ("Austria", ["AUSTRIA"]),
    "BA": ("Bosnia and Herzegovina", ["BOSNIA", "BOSNIA AND HERZEGOVINA"]),
    "BE": ("Belgium", ["BELGIUM"]),
    "BG": ("Bulgaria", ["BULGARIA"]),
    "BY": ("Belarus", ["BELARUS"]),
    "CH": ("Switzerland", ["SWITZERLAND"]),
    "CY": ("Cyprus", ["CYPRUS"]),
    "CZ": ("Czech Republic", ["CZECH REPUBLIC", "CZECHIA"]),
    "DK": ("Denmark", ["DENMARK"]),
    "EE": ("Estonia", ["ESTONIA"]),
    "ES": ("Spain", ["SPAIN"]),
    "FI": ("Finland", ["FINLAND"]),
    "GR": ("Greece", ["GREECE"]),
    "HR": ("Croatia", ["CROATIA"]),
    "HU": ("Hungary", ["HUNGARY"]),
    "IE": ("Ireland", ["IRELAND"]),
    "IS": ("Iceland", ["ICELAND"]),
    "LI": ("Liechtenstein", ["LIECHTENSTEIN"]),
    "LT": ("Lithuania", ["LITHUANIA"]),
    "LU": ("Luxembourg", ["LUXEMBOURG"]),
    "LV": ("Latvia", ["LATVIA"]),
    "MC": ("Monaco", ["MONACO"]),
    "MD": ("Moldova", ["MOLDOVA"]),
    "ME": ("Montenegro", ["MONTENEGRO"]),
    "MK": ("North Macedonia", ["NORTH MACEDONIA", "MACEDONIA"]),
    "MT": ("Malta", ["MALTA"]),
    "NO": ("Norway", ["NORWAY"]),
    "PL": ("Poland", ["POLAND"]),
    "PT": ("Portugal", ["PORTUGAL"]),
    "RO": ("Romania", ["ROMANIA"]),
    "RS": ("Serbia", ["SERBIA"]),
    "SE": ("Sweden", ["SWEDEN"]),
    "SI": ("Slovenia", ["SLOVENIA"]),
    "SK": ("Slovakia", ["SLOVAKIA"]),
    "SM": ("San Marino", ["SAN MARINO"]),
    "UA": ("Ukraine", ["UKRAINE"]),
    "VA": ("Vatican City", ["VATICAN", "VATICAN CITY", "HOLY SEE"]),
}

# Flattened lookup: every code and alias -> code
_LOOKUP: Dict[str, str] = {}
for _code, (_name, _aliases) in COUNTRY_MAPPING.items():
    _LOOKUP[_code] = _code
    for _alias in _aliases:
        _LOOKUP[_alias] = _code

_CODE_RE = re.compile(r"^[A-Z]{2}$")
_LEADING_NUMBER_RE = re.compile(r"^\s*(\d+[A-Za-z]?(?:[-/]\d+[A-Za-z]?)?)[,\s]+(.+)$")
_TRAILING_NUMBER_RE = re.compile(r"^(.+?)[,\s]+(\d+[A-Za-z]?(?:[-/]\d+[A-Za-z]?)?)\s*$")


def normalize_country(value: Optional[str]) -> Optional[str]:
    """
    Map a free-text country to its alpha-2 code.

    Unrecognised values come back unchanged so callers can surface a
    data-quality warning; empty values are returned as given.
    """
    if not value or not value.strip():
        return value
    return _LOOKUP.get(value.strip().upper(), value)


def is_country_code(value: Optional[str]) -> bool:
    """True for a two-letter uppercase code (not checked against the table)."""
    return bool(value) and bool(_CODE_RE.match(value))


def country_display_name(code: Optional[str]) -> str:
    if not code:
        return "Unknown"
    entry = COUNTRY_MAPPING.get(code.upper())
    return entry[0] if entry else code


def split_house_number(line1: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """
    Split "12 Rue de la Paix" or "Hauptstrasse 5a" into (house_number, street).

    Returns (None, line1) when no number token is found.
    """
    if not line1:
        return None, line1
    match = _LEADING_NUMBER_RE.match(line1)
    if match:
        return match.group(1), match.group(2).strip()
    match = _TRAILING_NUMBER_RE.match(line1)
    if match:
        return match.group(2), match.group(1).strip()
    return None, line1.strip()
