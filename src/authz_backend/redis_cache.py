import os
import logging
from aiocache import Cache
from aiocache.serializers import StringSerializer

logger = logging.getLogger(__name__)

# Get Redis configuration from environment
REDIS_HOST = os.environ.get('REDIS_HOST', 'localhost')
REDIS_PORT = int(os.environ.get('REDIS_PORT', '6379'))
REDIS_PASSWORD = os.environ.get('REDIS_PASSWORD', '')
REDIS_DB = int(os.environ.get('REDIS_DB', '0'))
# Seconds before a cache call gives up and counts as a miss
REDIS_TIMEOUT = float(os.environ.get('REDIS_TIMEOUT', '1'))

# Authorization entries are stored as serialized JSON strings
_redis_cache = Cache(
    Cache.REDIS,
    endpoint=REDIS_HOST,
    port=REDIS_PORT,
    password=REDIS_PASSWORD if REDIS_PASSWORD else None,
    db=REDIS_DB,
    pool_max_size=10,
    timeout=REDIS_TIMEOUT,
    serializer=StringSerializer(),
)

async def get_redis_client() -> Cache:
    return _redis_cache

async def close_redis_client():
    try:
        await _redis_cache.close()
    except Exception as e:
        logger.warning(f"Closing redis client failed: {e}")
