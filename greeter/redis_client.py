import logging
import time

import redis

from greeter import config

logger = logging.getLogger(__name__)


def connect_redis(
    host: str | None = None,
    port: int | None = None,
    db: int | None = None,
    *,
    max_retries: int | None = None,
    base_delay: float = 1.0,
    max_delay: float = 10.0,
) -> redis.Redis:
    """Create a Redis connection, retrying with exponential backoff until PING succeeds."""
    host = host or config.REDIS_HOST
    port = config.REDIS_PORT if port is None else port
    db = config.REDIS_DB if db is None else db
    max_retries = config.REDIS_MAX_RETRIES if max_retries is None else max_retries

    for attempt in range(max_retries):
        try:
            connection = redis.Redis(
                host=host,
                port=port,
                db=db,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
                decode_responses=True,
            )
            connection.ping()
            logger.info("Connected to Redis at %s:%s (DB %s)", host, port, db)
            return connection
        except (redis.exceptions.ConnectionError, redis.exceptions.TimeoutError, OSError) as e:
            if attempt < max_retries - 1:
                delay = min(base_delay * (2**attempt), max_delay)
                logger.warning(
                    "Redis connection failed (attempt %d/%d): %s; retrying in %.1f seconds",
                    attempt + 1,
                    max_retries,
                    e,
                    delay,
                )
                time.sleep(delay)
                continue
            raise redis.exceptions.ConnectionError(
                f"Could not connect to Redis at {host}:{port} after {max_retries} attempts"
            ) from e

    raise redis.exceptions.ConnectionError(f"Could not connect to Redis at {host}:{port}")
