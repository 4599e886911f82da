import json
import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional
from uuid import uuid4

from budgetsync.domain import Project, project_from_dict, project_to_dict
from budgetsync.errors import PersistenceFailure
from budgetsync.sharing import resolve_access
from budgetsync.storage import LocalCache, RemoteStore, Unsubscribe
from budgetsync.sync import cache_key

logger = logging.getLogger(__name__)

PROJECTS_CACHE_KEY = "expense-projects"
LAST_SELECTED_KEY = "last-selected-project"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_project(name: str, user_id: str, description: str = "", now: Optional[str] = None) -> Project:
    name = (name or "").strip()
    if not name:
        raise ValueError("Project name cannot be empty")
    now = now or _now()
    return Project(
        id=uuid4().hex,
        name=name,
        user_id=user_id,
        description=description.strip(),
        created_at=now,
        last_modified=now,
    )


def sort_projects(projects: Iterable[Project]) -> List[Project]:
    return sorted(projects, key=lambda p: p.last_modified, reverse=True)


def _from_docs(docs: Iterable[dict], user_id: str) -> List[Project]:
    now = _now()
    return sort_projects(project_from_dict(d, user_id, now) for d in docs if isinstance(d, dict) and d.get("id"))


def cached_projects(cache: LocalCache, user_id: str) -> List[Project]:
    text = cache.get(PROJECTS_CACHE_KEY)
    if not text:
        return []
    try:
        docs = json.loads(text)
    except json.JSONDecodeError as e:
        logger.warning("Could not decode cached project list: %s", e)
        return []
    if not isinstance(docs, list):
        return []
    return [p for p in _from_docs(docs, user_id) if p.user_id == user_id]


def _cache_projects(cache: LocalCache, projects: Iterable[Project]) -> None:
    cache.set(PROJECTS_CACHE_KEY, json.dumps([project_to_dict(p) for p in projects], ensure_ascii=False))


def _upsert_cached(cache: LocalCache, project: Project) -> None:
    text = cache.get(PROJECTS_CACHE_KEY)
    try:
        docs = json.loads(text) if text else []
    except json.JSONDecodeError:
        docs = []
    if not isinstance(docs, list):
        docs = []
    docs = [d for d in docs if isinstance(d, dict) and d.get("id") != project.id]
    docs.append(project_to_dict(project))
    cache.set(PROJECTS_CACHE_KEY, json.dumps(docs, ensure_ascii=False))


async def list_projects(remote: RemoteStore, cache: LocalCache, user_id: str) -> List[Project]:
    """Projects owned by user_id, newest first; falls back to the cache when the remote fails."""
    try:
        docs = await remote.list_projects(user_id)
    except PersistenceFailure as e:
        logger.warning("Listing projects from local cache: %s", e)
        return cached_projects(cache, user_id)
    projects = _from_docs(docs, user_id)
    _cache_projects(cache, projects)
    return projects


async def save_project(
    remote: RemoteStore, cache: LocalCache, project: Project, now: Optional[str] = None
) -> Project:
    """Stamp last_modified, cache it, then write it remotely.

    A remote failure is re-raised after the cache has been updated.
    """
    stamped = replace(project, last_modified=now or _now())
    _upsert_cached(cache, stamped)
    await remote.save_project(project_to_dict(stamped))
    return stamped


async def rename_project(
    remote: RemoteStore, cache: LocalCache, project: Project, name: str, description: Optional[str] = None
) -> Project:
    name = (name or "").strip()
    if not name:
        raise ValueError("Project name cannot be empty")
    updated = replace(project, name=name, description=project.description if description is None else description)
    return await save_project(remote, cache, updated)


async def delete_project(remote: RemoteStore, cache: LocalCache, project_id: str) -> None:
    """Delete a project and every month of its data, locally and remotely."""
    cache.remove(cache_key(project_id))
    text = cache.get(PROJECTS_CACHE_KEY)
    if text:
        try:
            docs = json.loads(text)
        except json.JSONDecodeError:
            docs = []
        if isinstance(docs, list):
            cache.set(
                PROJECTS_CACHE_KEY,
                json.dumps([d for d in docs if isinstance(d, dict) and d.get("id") != project_id], ensure_ascii=False),
            )
    if cache.get(LAST_SELECTED_KEY) == project_id:
        cache.remove(LAST_SELECTED_KEY)

    await remote.delete_project_data(project_id)
    await remote.delete_project(project_id)
    logger.info("Deleted project %s", project_id)


def watch_projects(
    remote: RemoteStore, user_id: str, on_update: Callable[[List[Project]], None]
) -> Unsubscribe:
    return remote.subscribe_projects(user_id, lambda docs: on_update(_from_docs(docs, user_id)))


async def find_project_by_token(remote: RemoteStore, token: str) -> Optional[Project]:
    doc = await remote.get_project_by_share_token(token)
    if doc is None:
        return None
    project = project_from_dict(doc, now=_now())
    return project if resolve_access(project, token).granted else None


def remember_selection(cache: LocalCache, project_id: Optional[str]) -> None:
    if project_id:
        cache.set(LAST_SELECTED_KEY, project_id)
    else:
        cache.remove(LAST_SELECTED_KEY)
