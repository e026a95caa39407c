from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Tuple

from app.core.exceptions import InventoryError
from app.core.logger import logger


class InMemoryInventoryService:
    """
    Tracks reserved [start, end) ranges per item. An item is available for a
    range when no reservation overlaps it.
    """

    def __init__(self):
        self.reservations: Dict[str, List[Tuple[datetime, datetime]]] = defaultdict(list)

    def _overlaps(self, item_id: str, start_date: datetime, end_date: datetime) -> bool:
        for r_start, r_end in self.reservations.get(item_id, []):
            if not (end_date <= r_start or start_date >= r_end):
                return True
        return False

    async def check_availability(self, item_id: str, start_date: datetime, end_date: datetime) -> bool:
        return not self._overlaps(item_id, start_date, end_date)

    async def reserve_item(self, item_id: str, start_date: datetime, end_date: datetime) -> None:
        if self._overlaps(item_id, start_date, end_date):
            raise InventoryError(f"Item {item_id} is no longer available from {start_date} to {end_date}")

        self.reservations[item_id].append((start_date, end_date))
        logger.info(f"📦 Item {item_id} reserved: {start_date.isoformat()} -> {end_date.isoformat()}")

    async def release_item(self, item_id: str, start_date: datetime, end_date: datetime) -> None:
        try:
            self.reservations.get(item_id, []).remove((start_date, end_date))
        except ValueError:
            raise InventoryError(f"No reservation of item {item_id} from {start_date} to {end_date}")

        logger.info(f"📦 Item {item_id} released: {start_date.isoformat()} -> {end_date.isoformat()}")
