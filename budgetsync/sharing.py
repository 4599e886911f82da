import hmac
import logging
import secrets
from dataclasses import replace
from datetime import datetime, timezone
from typing import Iterable, NamedTuple, Optional

from budgetsync.domain import Project, ProjectData
from budgetsync.store import MonthlyDataStore

logger = logging.getLogger(__name__)

# token_urlsafe(12) is 16 characters
MIN_TOKEN_BYTES = 12
DEFAULT_TOKEN_BYTES = 24


class Access(NamedTuple):
    granted: bool
    editable: bool


NO_ACCESS = Access(False, False)


def generate_share_token(nbytes: int = DEFAULT_TOKEN_BYTES) -> str:
    return secrets.token_urlsafe(max(nbytes, MIN_TOKEN_BYTES))


def share_url(base_url: str, token: str) -> str:
    return f"{base_url.rstrip('/')}/{token}"


def resolve_access(project: Optional[Project], token: Optional[str]) -> Access:
    if project is None or not project.is_shared or not project.share_token or not token:
        return NO_ACCESS
    if not hmac.compare_digest(project.share_token, token):
        return NO_ACCESS
    return Access(True, project.allow_edit)


def share_project(project: Project, token: str, allow_edit: bool, now: Optional[str] = None) -> Project:
    now = now or datetime.now(timezone.utc).isoformat()
    logger.info("Sharing project %s (%s)", project.id, "edit" if allow_edit else "read-only")
    return replace(
        project,
        is_shared=True,
        share_token=token,
        allow_edit=allow_edit,
        shared_at=now,
        last_modified=now,
    )


def unshare_project(project: Project, now: Optional[str] = None) -> Project:
    now = now or datetime.now(timezone.utc).isoformat()
    logger.info("Stopped sharing project %s", project.id)
    return replace(
        project,
        is_shared=False,
        share_token=None,
        allow_edit=False,
        shared_at=None,
        last_modified=now,
    )


def find_shared_project(projects: Iterable[Project], token: str) -> Optional[Project]:
    for p in projects:
        if resolve_access(p, token).granted:
            return p
    return None


def open_shared_store(project: Project, token: str, data: ProjectData, **store_kwargs) -> Optional[MonthlyDataStore]:
    """Build a store for a share-link holder, or None when the token grants nothing.

    Without an edit grant every mutating call on the returned store raises
    ``ReadOnlyViolation``.
    """
    access = resolve_access(project, token)
    if not access.granted:
        logger.warning("Rejected share token for project %s", project.id)
        return None
    return MonthlyDataStore(project.id, data, editable=access.editable, **store_kwargs)
