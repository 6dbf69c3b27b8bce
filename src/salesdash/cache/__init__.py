"""Deal cache -- normalized snapshot of upstream deals plus its refresh protocol.

Provides:
- Deal / CacheStatus / RefreshResult schemas
- normalize_deal(): raw upstream record -> Deal
- DealCacheStore: atomic full-replace snapshot + metadata row
- CacheRefresher / RefreshLock: refresh state machine, status, warm-up, auto-refresh
- ReferenceData: TTL-cached users and option labels
"""

from src.salesdash.cache.normalizer import CustomFieldKeys, NormalizationError, normalize_deal
from src.salesdash.cache.reference import ReferenceData
from src.salesdash.cache.refresh import CacheRefresher, RefreshLock
from src.salesdash.cache.schemas import CacheStatus, Deal, DealStatus, RefreshResult, SyncStatus
from src.salesdash.cache.store import DealCacheStore

__all__ = [
    "CacheRefresher",
    "CacheStatus",
    "CustomFieldKeys",
    "Deal",
    "DealCacheStore",
    "DealStatus",
    "NormalizationError",
    "ReferenceData",
    "RefreshLock",
    "RefreshResult",
    "SyncStatus",
    "normalize_deal",
]
