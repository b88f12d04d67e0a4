"""
Lane catalog.

The facility has a fixed set of lanes with ids 1..LANE_COUNT. Missing lanes
are created on demand with the default capacity; existing lanes are never
touched, so operators can raise a lane's capacity without it being reset.
"""

from typing import Optional

from sqlalchemy.exc import DBAPIError

from facility_booking.core.config import get_settings
from facility_booking.core.exceptions import StorageError
from facility_booking.core.logging import get_logger
from facility_booking.models import Lane
from facility_booking.services.interfaces import ReservationStore

logger = get_logger(__name__)


class ResourceCatalog:

    def __init__(
        self,
        store: ReservationStore,
        expected_count: Optional[int] = None,
        default_capacity: Optional[int] = None,
        name_template: Optional[str] = None,
    ):
        settings = get_settings()
        self.store = store
        self.expected_count = expected_count or settings.LANE_COUNT
        self.default_capacity = default_capacity or settings.LANE_DEFAULT_CAPACITY
        self.name_template = name_template or settings.LANE_NAME_TEMPLATE

    async def ensure_default_resources(
        self,
        expected_count: Optional[int] = None,
        default_capacity: Optional[int] = None,
    ) -> int:
        """
        Create whichever of lanes 1..expected_count are missing, in one batch.
        Returns how many were inserted (0 when the catalog is complete).
        Raises StorageError if the write fails; calling again is safe.
        """
        expected_count = expected_count or self.expected_count
        default_capacity = default_capacity or self.default_capacity

        try:
            async with self.store.transaction():
                existing = await self.store.list_resource_ids()
                missing = [i for i in range(1, expected_count + 1) if i not in existing]
                if missing:
                    await self.store.insert_resources([
                        Lane(id=i, name=self.name_template.format(number=i), capacity=default_capacity)
                        for i in missing
                    ])
        except DBAPIError as e:
            # A concurrent request materializing the same ids also lands here
            logger.error("lanes_materialization_failed", error=str(e))
            raise StorageError("Could not create default lanes") from e

        if missing:
            logger.info("lanes_materialized", lane_ids=missing, capacity=default_capacity)
        return len(missing)

    async def list(self) -> list[Lane]:
        async with self.store.transaction():
            return await self.store.list_resources(self.expected_count)
