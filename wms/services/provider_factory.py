from __future__ import annotations

from functools import lru_cache

from wms.config import settings
from wms.services.zone_recommender import NoZoneRecommender, RandomZoneRecommender


@lru_cache(maxsize=1)
def get_zone_recommender():
    strategy = settings.zone_recommender.strip().lower()
    if strategy == 'none':
        return NoZoneRecommender()
    return RandomZoneRecommender(zone_type=settings.recommended_zone_type)
