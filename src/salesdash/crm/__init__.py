"""Upstream CRM layer -- paginated deal source consumed by the cache refresher.

Provides:
- DealSource: abstract paginated source (pages, users, fields, products)
- PipedriveSource: Pipedrive v1 REST implementation with retry/backoff
- field_mapping: custom field keys, option tables and label lookup
"""

from src.salesdash.crm.adapter import DealPage, DealSource
from src.salesdash.crm.field_mapping import (
    COUNTRY_OPTIONS,
    ORIGIN_OPTIONS,
    option_label,
    parse_field_options,
)
from src.salesdash.crm.pipedrive import PipedriveSource, UpstreamError

__all__ = [
    "DealPage",
    "DealSource",
    "PipedriveSource",
    "UpstreamError",
    "COUNTRY_OPTIONS",
    "ORIGIN_OPTIONS",
    "option_label",
    "parse_field_options",
]
