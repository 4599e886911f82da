"""Opaque identities for users without an account and for devices.

An anonymous id is an ordinary owner id: projects created under it are
listed, shared and deleted exactly like those of a signed-in user.
"""

import secrets
import time

from budgetsync.storage import LocalCache

USER_ID_KEY = "temporary-user-id"
DEVICE_ID_KEY = "device-id"


def _generate(prefix: str) -> str:
    return f"{prefix}_{int(time.time() * 1000)}_{secrets.token_hex(5)}"


def _cached_or_new(cache: LocalCache, key: str, prefix: str) -> str:
    value = cache.get(key)
    if not value:
        value = _generate(prefix)
        cache.set(key, value)
    return value


def temporary_user_id(cache: LocalCache) -> str:
    return _cached_or_new(cache, USER_ID_KEY, "user")


def device_id(cache: LocalCache) -> str:
    return _cached_or_new(cache, DEVICE_ID_KEY, "device")
