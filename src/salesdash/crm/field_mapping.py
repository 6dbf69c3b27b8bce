"""Pipedrive custom-field keys, option codes and label tables.

Defines:
- Custom field keys for deal type, country and origin (Settings defaults).
- NEW_CUSTOMER / UPSELLING deal-type option codes.
- COUNTRY_OPTIONS / ORIGIN_OPTIONS: fallback option id -> label tables used
  when the dealFields call is unavailable.
- option_label(): label lookup with a "{Kind} {code}" placeholder.
- parse_field_options(): dealFields payload -> {field_key: {option_id: label}}.
"""

from __future__ import annotations

from typing import Any


# ── Custom Field Keys ──────────────────────────────────────────────────────

TYPE_OF_DEAL_FIELD_KEY = "a7ab0c5cfbfd5a57ce6531b4aa0a74b317c4b657"
COUNTRY_FIELD_KEY = "f7c43d98b4ef75192ee0798b360f2076754981b9"
ORIGIN_FIELD_KEY = "a9241093db8147d20f4c1c7f6c1998477f819ef4"

# ── Deal Types ─────────────────────────────────────────────────────────────

NEW_CUSTOMER = "13"
UPSELLING = "14"

# ── Option Tables ──────────────────────────────────────────────────────────

COUNTRY_OPTIONS: dict[str, str] = {
    "265": "Argentina",
    "574": "Brasil",
    "274": "Bolivia",
    "575": "Canadá",
    "268": "Chile",
    "267": "Colombia",
    "600": "Costa Rica",
    "272": "España",
    "273": "Ecuador",
    "601": "El Salvador",
    "602": "Guatemala",
    "603": "Honduras",
    "266": "Peru",
    "269": "Mexico",
    "594": "Nicaragua",
    "275": "Otros",
    "271": "Paraguay",
    "391": "Panama",
    "563": "República Dominicana",
    "270": "Uruguay",
    "604": "Venezuela",
}

ORIGIN_OPTIONS: dict[str, str] = {
    "375": "Directo",
    "15": "Directo Inbound",
    "230": "Directo Outbound",
    "741": "Netlife",
    "16": "Telefonica ARG",
    "18": "Telefónica CO",
    "40": "Telefónica PE",
    "171": "Telefonica Chile",
    "368": "Telefonica UY",
    "239": "Telefonica España - TTech",
    "664": "Telefonica España - Acens",
    "762": "Nods",
    "17": "Apex",
    "37": "Ricoh",
    "577": "Solu",
    "578": "Teleperformance",
    "586": "Link Solution",
    "605": "Atento",
    "610": "E3",
    "616": "Telefónica México",
    "617": "Telefónica Ecuador",
    "618": "Agata",
    "619": "Outsourcing",
    "626": "Jelou",
    "628": "Teknio",
    "638": "Lop",
    "649": "Konecta",
    "651": "Pontech",
    "750": "Vtex Colombia",
    "748": "Santex",
    "655": "Tatt",
    "656": "Orsonia",
    "763": "Tecnicom",
    "657": "Idata",
    "666": "Nexa BPO",
    "678": "Intellecta",
    "172": "Agencia COMLatam",
    "718": "AMG Consulting",
    "751": "Vtex - Otros",
    "758": "Patagonia - Franco Roccuzo",
    "759": "Avansa",
    "761": "WoowUp",
    "765": "Mak21",
    "772": "Solvis",
    "773": "Integratel",
    "740": "Govtech - Luciano",
}


# ── Label Lookup ───────────────────────────────────────────────────────────


def option_label(options: dict[str, str], code: str | None, kind: str) -> str:
    """Resolve an option code to its label.

    Unknown codes degrade to a placeholder such as "Country 999" instead
    of failing; a missing code resolves to "Sin especificar".
    """
    if code is None or code == "":
        return "Sin especificar"
    return options.get(str(code), f"{kind} {code}")


def parse_field_options(fields: list[dict[str, Any]]) -> dict[str, dict[str, str]]:
    """Convert a dealFields payload into {field_key: {option_id: label}}.

    Fields without options (text, numeric, dates) are skipped.
    """
    parsed: dict[str, dict[str, str]] = {}
    for field in fields:
        key = field.get("key")
        options = field.get("options") or []
        if not key or not options:
            continue
        parsed[key] = {
            str(option["id"]): str(option.get("label", option["id"]))
            for option in options
            if "id" in option
        }
    return parsed
