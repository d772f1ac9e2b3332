"""
Redis-backed index of connected drivers.

Used by nearest-claim routing to know which drivers currently hold an open
driver socket and where they last reported being. Each driver has a metadata
hash with a TTL; the sorted set of connected ids is ordered by first connect
time so iteration order is stable. Entries are removed explicitly on
disconnect and lazily when their metadata has expired.

Keys:
    dispatch:drivers:connected   ZSET driver_id -> connect timestamp
    dispatch:driver:<id>         HASH channel, latitude, longitude, vehicle_type, seen_at
"""

import logging
import time
from typing import List, Optional

import redis
from django.conf import settings

from common.conf import dispatch_setting
from services.matching.routing import ConnectedDriver

logger = logging.getLogger(__name__)

CONNECTED_KEY = "dispatch:drivers:connected"
DRIVER_META_PREFIX = "dispatch:driver:"


def get_redis_client() -> redis.Redis:
    """Get Redis client for the connection index."""
    return redis.Redis.from_url(settings.REDIS_URL, decode_responses=True)


def _meta_key(driver_id) -> str:
    return f"{DRIVER_META_PREFIX}{driver_id}"


def _as_float(value) -> Optional[float]:
    if value in (None, ""):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class DriverConnectionIndex:
    def __init__(self, client: Optional[redis.Redis] = None, ttl_seconds: Optional[int] = None):
        self.client = client if client is not None else get_redis_client()
        self.ttl = int(ttl_seconds or dispatch_setting("CONNECTION_TTL_SECONDS"))

    def register(self, driver_id, channel_name: str, latitude=None, longitude=None, vehicle_type=None):
        """Record an open driver socket, replacing any previous one for the driver."""
        meta = {
            "channel": channel_name,
            "latitude": "" if latitude is None else str(latitude),
            "longitude": "" if longitude is None else str(longitude),
            "vehicle_type": vehicle_type or "",
            "seen_at": str(time.time()),
        }
        pipe = self.client.pipeline()
        pipe.zadd(CONNECTED_KEY, {str(driver_id): time.time()}, nx=True)
        pipe.hset(_meta_key(driver_id), mapping=meta)
        pipe.expire(_meta_key(driver_id), self.ttl)
        pipe.execute()
        logger.info("Driver %s registered in connection index", driver_id)

    def update_position(self, driver_id, latitude: float, longitude: float) -> bool:
        """Refresh position and TTL. Returns False if the driver is not registered."""
        key = _meta_key(driver_id)
        if not self.client.exists(key):
            return False
        pipe = self.client.pipeline()
        pipe.hset(key, mapping={
            "latitude": str(latitude),
            "longitude": str(longitude),
            "seen_at": str(time.time()),
        })
        pipe.expire(key, self.ttl)
        pipe.execute()
        return True

    def touch(self, driver_id) -> bool:
        """Extend the TTL of a live entry. Returns False if it has already expired."""
        # EXPIRE leaves missing keys alone
        return bool(self.client.expire(_meta_key(driver_id), self.ttl))

    def evict(self, driver_id, channel_name: Optional[str] = None) -> bool:
        """
        Remove a driver from the index.

        With ``channel_name`` the entry is only removed if it still belongs to
        that socket, so a stale disconnect cannot evict a newer connection.
        """
        key = _meta_key(driver_id)
        if channel_name is not None:
            current = self.client.hget(key, "channel")
            if current is not None and current != channel_name:
                logger.debug("Driver %s reconnected elsewhere, keeping entry", driver_id)
                return False
        pipe = self.client.pipeline()
        pipe.zrem(CONNECTED_KEY, str(driver_id))
        pipe.delete(key)
        pipe.execute()
        logger.info("Driver %s evicted from connection index", driver_id)
        return True

    def connected_drivers(self) -> List[ConnectedDriver]:
        """Live entries in connect order; expired ones are dropped on the way."""
        drivers: List[ConnectedDriver] = []
        expired = []
        for driver_id in self.client.zrange(CONNECTED_KEY, 0, -1):
            meta = self.client.hgetall(_meta_key(driver_id))
            if not meta:
                expired.append(driver_id)
                continue
            drivers.append(ConnectedDriver(
                driver_id=int(driver_id),
                latitude=_as_float(meta.get("latitude")),
                longitude=_as_float(meta.get("longitude")),
                vehicle_type=meta.get("vehicle_type") or None,
            ))
        if expired:
            self.client.zrem(CONNECTED_KEY, *expired)
            logger.debug("Dropped %d expired driver connections", len(expired))
        return drivers


_index: Optional[DriverConnectionIndex] = None


def get_connection_index() -> DriverConnectionIndex:
    global _index
    if _index is None:
        _index = DriverConnectionIndex()
    return _index
