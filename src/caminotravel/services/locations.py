"""City code lookup for accommodation searches."""

import unicodedata
from typing import Dict, Tuple

# city code -> (ISO 3166-1 alpha-2 country, accepted names)
CITIES: Dict[str, Tuple[str, Tuple[str, ...]]] = {
    "MAD": ("ES", ("madrid",)),
    "BCN": ("ES", ("barcelona",)),
    "PMI": ("ES", ("mallorca", "majorca", "palma", "palma de mallorca")),
    "MAL": ("ES", ("marbella",)),
    "IBZ": ("ES", ("ibiza",)),
    "SEV": ("ES", ("sevilla", "seville")),
    "VAL": ("ES", ("valencia",)),
    "GRA": ("ES", ("granada",)),
    "BIL": ("ES", ("bilbao",)),
    "PAR": ("FR", ("paris",)),
    "NIC": ("FR", ("nice", "niza")),
    "CAN": ("FR", ("cannes",)),
    "LYO": ("FR", ("lyon",)),
    "MON": ("MC", ("monaco", "monte carlo")),
    "ROM": ("IT", ("rome", "roma")),
    "MIL": ("IT", ("milan", "milano")),
    "VEN": ("IT", ("venice", "venezia")),
    "FLO": ("IT", ("florence", "firenze")),
    "NAP": ("IT", ("naples", "napoli")),
    "BER": ("DE", ("berlin",)),
    "MUN": ("DE", ("munich", "munchen")),
    "FRA": ("DE", ("frankfurt",)),
    "HAM": ("DE", ("hamburg",)),
    "LON": ("GB", ("london", "londres")),
    "EDI": ("GB", ("edinburgh",)),
    "MAN": ("GB", ("manchester",)),
    "LIS": ("PT", ("lisbon", "lisboa")),
    "POR": ("PT", ("porto", "oporto")),
    "ALG": ("PT", ("algarve",)),
    "ATH": ("GR", ("athens", "atenas")),
    "SAN": ("GR", ("santorini",)),
    "MYK": ("GR", ("mykonos",)),
    "ZUR": ("CH", ("zurich",)),
    "GEN": ("CH", ("geneva", "ginebra")),
    "ZER": ("CH", ("zermatt",)),
    "VIE": ("AT", ("vienna", "viena", "wien")),
    "SAL": ("AT", ("salzburg",)),
    "INS": ("AT", ("innsbruck",)),
    "AMS": ("NL", ("amsterdam",)),
    "ROT": ("NL", ("rotterdam",)),
    "IST": ("TR", ("istanbul",)),
    "ANT": ("TR", ("antalya",)),
    "BOD": ("TR", ("bodrum",)),
    "NYC": ("US", ("new york", "nueva york")),
    "MIA": ("US", ("miami",)),
    "LAX": ("US", ("los angeles",)),
    "LAS": ("US", ("las vegas",)),
    "CUN": ("MX", ("cancun",)),
    "RIV": ("MX", ("riviera maya",)),
    "CDM": ("MX", ("mexico city", "ciudad de mexico")),
    "PUJ": ("DO", ("punta cana",)),
    "AUA": ("AW", ("aruba",)),
    "BKK": ("TH", ("bangkok",)),
    "PHU": ("TH", ("phuket",)),
    "SIN": ("SG", ("singapore", "singapur")),
    "TYO": ("JP", ("tokyo", "tokio")),
    "DPS": ("ID", ("bali",)),
    "DXB": ("AE", ("dubai",)),
    "AUH": ("AE", ("abu dhabi",)),
}

_NAME_TO_CODE = {name: code for code, (_, names) in CITIES.items() for name in names}


def normalize_text(text: str) -> str:
    """Lowercase and strip accents ("Cancún" -> "cancun")."""
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch)).lower().strip()


def resolve_city_code(destination: str) -> str | None:
    """Map a city name or 3-letter city code to a city code, or None if unknown."""
    code = destination.strip().upper()
    if code in CITIES:
        return code
    return _NAME_TO_CODE.get(normalize_text(destination))


def country_for_city(city_code: str) -> str:
    return CITIES[city_code][0]
