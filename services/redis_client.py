import logging
import time

import redis

from config import REDIS_URL

# ---------------------------------------------------------
# LOGGING
# ---------------------------------------------------------
logger = logging.getLogger("api.redis")

# ---------------------------------------------------------
# LAZY CLIENT
# ---------------------------------------------------------
_client = None


def get_redis_client():
    global _client
    if _client is not None:
        return _client

    if not REDIS_URL:
        raise RuntimeError("REDIS_URL not set")

    logger.info("[REDIS] Initializing Redis client")
    _client = redis.Redis.from_url(
        REDIS_URL,
        decode_responses=True,
        socket_keepalive=True,
        socket_connect_timeout=2,
        retry_on_timeout=True,
    )

    # -----------------------------------------------------
    # CONNECTION DIAGNOSTICS
    # -----------------------------------------------------
    try:
        t0 = time.time()
        pong = _client.ping()
        ms = int((time.time() - t0) * 1000)
        logger.info(f"[REDIS] Connected OK ping={pong} latency={ms}ms")
    except redis.RedisError as e:
        logger.error(f"[REDIS] Initial ping failed: {e}")

    return _client
