"""
cache.py — key namespace and Redis connection pool for the state stores.

Namespace conventions:
  session:{session_id}     → Session record          store TTL = session TTL + retention grace
  draft:{session_id}       → Draft record            no store TTL (kept until cleared)
  otp:{mobile_number}      → OTP attempt record      store TTL = OTP retention window
  lock:{key}               → redis per-key lock      (redis backend only)

Design:
  - Uses redis.asyncio (async client, part of redis-py 5.x — do NOT use aioredis separately)
  - Pool created once by stores.build_store and owned by RedisStateStore
  - Store TTLs are a garbage-collection horizon; logical expiry is decided by the
    services against the injected clock, so an "expired" session is still readable
"""
import logging

import redis.asyncio as aioredis

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Key prefix constants
# ---------------------------------------------------------------------------
SESSION_PREFIX = "session"
DRAFT_PREFIX = "draft"
OTP_PREFIX = "otp"
LOCK_PREFIX = "lock"


# ---------------------------------------------------------------------------
# Key builders
# ---------------------------------------------------------------------------

def _join(prefix: str, namespace: str, ident: str) -> str:
    if prefix:
        return f"{prefix}:{namespace}:{ident}"
    return f"{namespace}:{ident}"


def make_session_key(session_id: str, prefix: str = "") -> str:
    """Build key for a session record: session:{session_id}"""
    return _join(prefix, SESSION_PREFIX, session_id)


def make_draft_key(session_id: str, prefix: str = "") -> str:
    """Build key for the draft owned by a session: draft:{session_id}"""
    return _join(prefix, DRAFT_PREFIX, session_id)


def make_otp_key(mobile_number: str, prefix: str = "") -> str:
    """Build key for OTP attempt state: otp:{mobile_number}"""
    return _join(prefix, OTP_PREFIX, mobile_number)


def make_lock_key(key: str) -> str:
    """Build the redis lock name guarding a record key: lock:{key}"""
    return f"{LOCK_PREFIX}:{key}"


def mask_mobile_number(mobile_number: str) -> str:
    """
    Mask the middle digits of a mobile number for logs and client echo.
    01712345678 → 0171******8
    """
    if len(mobile_number) < 11:
        return mobile_number
    return mobile_number[:4] + "*" * 6 + mobile_number[10:]


# ---------------------------------------------------------------------------
# Pool factory — called once in lifespan
# ---------------------------------------------------------------------------

async def create_redis_pool(redis_url: str) -> aioredis.Redis:
    """
    Create and return an async Redis connection pool.
    Called once by stores.build_store during lifespan startup.
    Verifies connectivity with PING before returning.
    """
    client = aioredis.from_url(
        redis_url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=20,
    )
    await client.ping()
    logger.info("Redis connection pool established at %s", redis_url)
    return client
