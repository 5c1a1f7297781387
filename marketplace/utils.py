# marketplace/utils.py
"""Shared utilities: logging, retry decorator and UTC clock helpers."""
import asyncio
import os
import logging
import time
from datetime import datetime, timezone
from functools import wraps
from dotenv import load_dotenv

load_dotenv()

def get_logger(name=__name__):
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        format="%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
        level=getattr(logging, level, logging.INFO)
    )
    return logging.getLogger(name)

logger = get_logger("marketplace")

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

def env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    try:
        return int(raw) if raw else default
    except ValueError:
        logger.warning("Invalid integer for %s=%r, using %s", name, raw, default)
        return default

def env_flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")

def retry(exceptions, tries=3, delay=1, backoff=2, logger=logger):
    """Retry the wrapped callable on `exceptions`; coroutine functions sleep without blocking."""
    def deco_retry(f):
        if asyncio.iscoroutinefunction(f):
            @wraps(f)
            async def f_retry_async(*args, **kwargs):
                mtries, mdelay = tries, delay
                while mtries > 1:
                    try:
                        return await f(*args, **kwargs)
                    except exceptions as e:
                        logger.warning("Retryable error: %s, retrying in %s sec", e, mdelay)
                        await asyncio.sleep(mdelay)
                        mtries -= 1
                        mdelay *= backoff
                return await f(*args, **kwargs)
            return f_retry_async

        @wraps(f)
        def f_retry(*args, **kwargs):
            mtries, mdelay = tries, delay
            while mtries > 1:
                try:
                    return f(*args, **kwargs)
                except exceptions as e:
                    logger.warning("Retryable error: %s, retrying in %s sec", e, mdelay)
                    time.sleep(mdelay)
                    mtries -= 1
                    mdelay *= backoff
            return f(*args, **kwargs)
        return f_retry
    return deco_retry
