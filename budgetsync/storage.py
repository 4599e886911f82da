"""Collaborator interfaces for persistence, plus the in-process implementations.

The remote store speaks plain JSON-like documents; typing and validation
happen in :mod:`budgetsync.codec`. ``InMemoryRemoteStore`` stands in for a
hosted document database (one document per project, push updates to
subscribers) and can be switched offline to exercise failure paths.
"""

import asyncio
import copy
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, List, Optional, Protocol

from budgetsync.errors import PersistenceFailure

logger = logging.getLogger(__name__)

Unsubscribe = Callable[[], None]


class RemoteStore(Protocol):
    async def load_project_data(self, project_id: str) -> Optional[dict]: ...

    async def save_project_data(self, project_id: str, data: dict) -> None: ...

    async def delete_project_data(self, project_id: str) -> None: ...

    def subscribe(self, project_id: str, on_update: Callable[[Optional[dict]], None]) -> Unsubscribe: ...

    async def list_projects(self, user_id: str) -> List[dict]: ...

    async def save_project(self, project: dict) -> None: ...

    async def delete_project(self, project_id: str) -> None: ...

    async def get_project_by_share_token(self, token: str) -> Optional[dict]: ...

    def subscribe_projects(self, user_id: str, on_update: Callable[[List[dict]], None]) -> Unsubscribe: ...


class LocalCache(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class InMemoryRemoteStore:

    def __init__(self):
        self.online = True
        self.save_calls = 0
        self._data: Dict[str, dict] = {}
        self._projects: Dict[str, dict] = {}
        self._data_subscribers: Dict[str, List[Callable]] = {}
        self._project_subscribers: Dict[str, List[Callable]] = {}

    def _check_online(self, project_id: str) -> None:
        if not self.online:
            raise PersistenceFailure(project_id, "remote store unreachable")

    # project data

    async def load_project_data(self, project_id: str) -> Optional[dict]:
        self._check_online(project_id)
        await asyncio.sleep(0)
        doc = self._data.get(project_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def save_project_data(self, project_id: str, data: dict) -> None:
        self._check_online(project_id)
        self.save_calls += 1
        await asyncio.sleep(0)
        self._data[project_id] = {**copy.deepcopy(data), "lastUpdated": _now()}
        self._notify_data(project_id)

    async def delete_project_data(self, project_id: str) -> None:
        self._check_online(project_id)
        await asyncio.sleep(0)
        self._data.pop(project_id, None)
        self._notify_data(project_id)

    def push(self, project_id: str, data: Optional[dict]) -> None:
        """Simulate a write from another device."""
        if data is None:
            self._data.pop(project_id, None)
        else:
            self._data[project_id] = {**copy.deepcopy(data), "lastUpdated": _now()}
        self._notify_data(project_id)

    def subscribe(self, project_id: str, on_update: Callable[[Optional[dict]], None]) -> Unsubscribe:
        handlers = self._data_subscribers.setdefault(project_id, [])
        handlers.append(on_update)

        def unsubscribe() -> None:
            if on_update in handlers:
                handlers.remove(on_update)

        return unsubscribe

    def _notify_data(self, project_id: str) -> None:
        doc = self._data.get(project_id)
        for handler in list(self._data_subscribers.get(project_id, [])):
            handler(copy.deepcopy(doc) if doc is not None else None)

    # project metadata

    async def list_projects(self, user_id: str) -> List[dict]:
        self._check_online(user_id)
        await asyncio.sleep(0)
        return self._projects_of(user_id)

    async def save_project(self, project: dict) -> None:
        self._check_online(project.get("id", ""))
        await asyncio.sleep(0)
        self._projects[project["id"]] = copy.deepcopy(project)
        self._notify_projects(project.get("userId", ""))

    async def delete_project(self, project_id: str) -> None:
        self._check_online(project_id)
        await asyncio.sleep(0)
        doc = self._projects.pop(project_id, None)
        if doc is not None:
            self._notify_projects(doc.get("userId", ""))

    async def get_project_by_share_token(self, token: str) -> Optional[dict]:
        self._check_online(token)
        await asyncio.sleep(0)
        for doc in self._projects.values():
            if doc.get("isShared") and doc.get("shareToken") == token:
                return copy.deepcopy(doc)
        return None

    def subscribe_projects(self, user_id: str, on_update: Callable[[List[dict]], None]) -> Unsubscribe:
        handlers = self._project_subscribers.setdefault(user_id, [])
        handlers.append(on_update)

        def unsubscribe() -> None:
            if on_update in handlers:
                handlers.remove(on_update)

        return unsubscribe

    def _projects_of(self, user_id: str) -> List[dict]:
        return [copy.deepcopy(p) for p in self._projects.values() if p.get("userId") == user_id]

    def _notify_projects(self, user_id: str) -> None:
        for handler in list(self._project_subscribers.get(user_id, [])):
            handler(self._projects_of(user_id))


class MemoryCache:

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._items: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> List[str]:
        return sorted(self._items)


class JsonFileCache(MemoryCache):
    """A MemoryCache mirrored to one JSON file; unreadable files start empty."""

    def __init__(self, path: Path):
        self.path = Path(path)
        super().__init__(self._read())

    def _read(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open('r', encoding='utf-8') as handle:
                data = json.load(handle)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Could not read local cache %s: %s", self.path, e)
            return {}
        if not isinstance(data, dict):
            return {}
        return {k: v for k, v in data.items() if isinstance(v, str)}

    def _write(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open('w', encoding='utf-8') as handle:
            json.dump(self._items, handle, indent=2, sort_keys=True, ensure_ascii=False)

    def set(self, key: str, value: str) -> None:
        super().set(key, value)
        self._write()

    def remove(self, key: str) -> None:
        super().remove(key)
        self._write()
