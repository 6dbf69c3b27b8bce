"""Country label -> sales region.

Six fixed regions; any country without an exact rule lands in Rest Latam.
"""

from __future__ import annotations

REST_LATAM = "Rest Latam"

REGIONS: tuple[str, ...] = ("Colombia", "Argentina", "Mexico", "Brasil", "España", REST_LATAM)

_COUNTRY_REGION: dict[str, str] = {
    "Colombia": "Colombia",
    "Argentina": "Argentina",
    "Mexico": "Mexico",
    "México": "Mexico",
    "Brasil": "Brasil",
    "Brazil": "Brasil",
    "España": "España",
    "Spain": "España",
}


def region_for_country(country_label: str | None) -> str:
    if not country_label:
        return REST_LATAM
    return _COUNTRY_REGION.get(country_label, REST_LATAM)
