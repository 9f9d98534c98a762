from __future__ import annotations

import random
from typing import Protocol

from sqlalchemy.orm import Session

from wms.models import StorageZone, ZoneType
from wms.services.catalog_service import list_active_zones_by_branch


class ZoneRecommender(Protocol):
    def recommend(self, db: Session, *, branch_id: int, sku_id: int) -> StorageZone | None: ...


class RandomZoneRecommender:
    """Unweighted pick among active zones of one type. A suggestion only, nothing is reserved."""

    def __init__(self, zone_type: ZoneType | str = ZoneType.STORAGE, rng: random.Random | None = None) -> None:
        self.zone_type = ZoneType(zone_type)
        self.rng = rng or random.Random()

    def recommend(self, db: Session, *, branch_id: int, sku_id: int) -> StorageZone | None:
        zones = list_active_zones_by_branch(db, branch_id=branch_id, zone_type=self.zone_type)
        if not zones:
            return None
        return self.rng.choice(zones)


class NoZoneRecommender:
    def recommend(self, db: Session, *, branch_id: int, sku_id: int) -> StorageZone | None:
        return None
