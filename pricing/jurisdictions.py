"""Canadian provincial pricing factors and sales tax."""

from dataclasses import dataclass
from typing import Dict, Optional


@dataclass(frozen=True)
class Jurisdiction:
    code: str
    labor_rate_per_hour: float
    material_multiplier: float
    tax_rate: float
    tax_name: str


DEFAULT_JURISDICTION = "ON"

PROVINCES: Dict[str, Jurisdiction] = {
    "ON": Jurisdiction("ON", 55.0, 1.05, 0.13, "HST"),
    "BC": Jurisdiction("BC", 52.0, 1.08, 0.12, "GST+PST"),
    "AB": Jurisdiction("AB", 50.0, 1.0, 0.05, "GST"),
    "QC": Jurisdiction("QC", 48.0, 1.03, 0.14975, "QST+GST"),
    "SK": Jurisdiction("SK", 45.0, 0.98, 0.11, "GST+PST"),
    "MB": Jurisdiction("MB", 46.0, 0.99, 0.12, "GST+PST"),
    "NS": Jurisdiction("NS", 48.0, 1.02, 0.15, "HST"),
    "NB": Jurisdiction("NB", 47.0, 1.01, 0.15, "HST"),
    "NL": Jurisdiction("NL", 46.0, 1.04, 0.15, "HST"),
    "PE": Jurisdiction("PE", 47.0, 1.02, 0.15, "HST"),
    "NT": Jurisdiction("NT", 65.0, 1.25, 0.05, "GST"),
    "NU": Jurisdiction("NU", 70.0, 1.3, 0.05, "GST"),
    "YT": Jurisdiction("YT", 58.0, 1.15, 0.05, "GST"),
}

_PROVINCE_NAMES = {
    "ontario": "ON",
    "british columbia": "BC",
    "alberta": "AB",
    "quebec": "QC",
    "québec": "QC",
    "saskatchewan": "SK",
    "manitoba": "MB",
    "nova scotia": "NS",
    "new brunswick": "NB",
    "newfoundland and labrador": "NL",
    "newfoundland": "NL",
    "prince edward island": "PE",
    "northwest territories": "NT",
    "nunavut": "NU",
    "yukon": "YT",
}


def get_jurisdiction(code: Optional[str], default: str = DEFAULT_JURISDICTION) -> Jurisdiction:
    """Look up a province by code or full name; unknown values get the default."""
    if code:
        key = code.strip()
        upper = key.upper()
        if upper in PROVINCES:
            return PROVINCES[upper]
        named = _PROVINCE_NAMES.get(key.lower())
        if named:
            return PROVINCES[named]
    return PROVINCES.get(default.upper(), PROVINCES[DEFAULT_JURISDICTION])
