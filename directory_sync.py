"""
Remote personnel directory sync for the OR Planner

Pushes local personnel changes to a list-backed REST directory (for example a
Microsoft Graph SharePoint list) and pulls remote people back in. Local state
always wins: every change is already saved locally before a sync is attempted,
and a failing record simply keeps its pending marker for the next sync.

Configuration via environment variables:
- DIRECTORY_BASE_URL: API root (default: https://graph.microsoft.com/v1.0)
- DIRECTORY_SITE_ID: Site that holds the personnel list
- DIRECTORY_LIST_ID: Personnel list id
- DIRECTORY_ACCESS_TOKEN: Bearer token (acquired outside this application)
- DIRECTORY_TIMEOUT: Request timeout in seconds (default: 15)
"""

import json
import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional
from urllib.request import urlopen, Request
from urllib.error import URLError, HTTPError

from planner.models import PersonnelGroup, SyncState, UNAVAILABLE, normalize_name

logger = logging.getLogger(__name__)


class RemoteSyncError(Exception):
    """A request to the remote directory failed."""


@dataclass
class RemotePerson:
    remote_id: str
    name: str
    department: str = ""
    job_title: str = ""
    is_active: bool = True


@dataclass
class SyncReport:
    created: int = 0
    updated: int = 0
    deleted: int = 0
    pulled: int = 0
    errors: List[str] = field(default_factory=list)
    skipped: bool = False

    @property
    def success(self) -> bool:
        return not self.errors and not self.skipped

    def to_dict(self) -> dict:
        return {
            "created": self.created,
            "updated": self.updated,
            "deleted": self.deleted,
            "pulled": self.pulled,
            "errors": self.errors,
            "skipped": self.skipped,
            "success": self.success,
        }


class RemoteDirectoryClient:
    """REST client for the remote personnel list."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        site_id: Optional[str] = None,
        list_id: Optional[str] = None,
        access_token: Optional[str] = None,
        timeout: Optional[float] = None
    ):
        self.base_url = (base_url or os.environ.get('DIRECTORY_BASE_URL', 'https://graph.microsoft.com/v1.0')).rstrip('/')
        self.site_id = site_id if site_id is not None else os.environ.get('DIRECTORY_SITE_ID', '')
        self.list_id = list_id if list_id is not None else os.environ.get('DIRECTORY_LIST_ID', '')
        self.access_token = access_token if access_token is not None else os.environ.get('DIRECTORY_ACCESS_TOKEN', '')
        self.timeout = float(timeout or os.environ.get('DIRECTORY_TIMEOUT', 15))

    def is_configured(self) -> bool:
        """Check if the remote directory is properly configured."""
        return bool(self.site_id and self.list_id and self.access_token)

    @property
    def items_url(self) -> str:
        return f"{self.base_url}/sites/{self.site_id}/lists/{self.list_id}/items"

    def _request(self, method: str, url: str, body: Optional[dict] = None):
        data = json.dumps(body).encode('utf-8') if body is not None else None
        req = Request(
            url,
            data=data,
            headers={
                "Authorization": f"Bearer {self.access_token}",
                "Content-Type": "application/json"
            },
            method=method
        )
        try:
            with urlopen(req, timeout=self.timeout) as response:
                raw = response.read().decode('utf-8')
                return json.loads(raw) if raw else None
        except HTTPError as e:
            error_body = e.read().decode('utf-8') if e.fp else str(e)
            raise RemoteSyncError(f"Directory API error ({e.code}): {error_body}") from e
        except URLError as e:
            raise RemoteSyncError(f"Directory network error: {e.reason}") from e
        except (TimeoutError, ValueError) as e:
            raise RemoteSyncError(f"Directory error: {e}") from e

    @staticmethod
    def _fields(person) -> dict:
        return {
            "fields": {
                "Title": person.name,
                "DisplayName": person.name,
                "JobTitle": person.group.value,
                "Department": person.department,
                "IsActive": person.is_active,
            }
        }

    def fetch_personnel(self) -> List[RemotePerson]:
        """All active people in the remote list."""
        data = self._request("GET", f"{self.items_url}?expand=fields") or {}
        people = []
        for item in data.get("value", []):
            fields = item.get("fields", {})
            person = RemotePerson(
                remote_id=str(item.get("id")),
                name=fields.get("DisplayName") or fields.get("Title") or "",
                department=fields.get("Department") or "",
                job_title=fields.get("JobTitle") or "",
                is_active=fields.get("IsActive") is not False,
            )
            if person.is_active and person.name:
                people.append(person)
        return people

    def create_item(self, person) -> str:
        """Create a list item and return its remote id."""
        data = self._request("POST", self.items_url, self._fields(person)) or {}
        if "id" not in data:
            raise RemoteSyncError("Directory API did not return an item id")
        return str(data["id"])

    def update_item(self, person):
        self._request("PATCH", f"{self.items_url}/{person.remote_id}/fields",
                      self._fields(person)["fields"])

    def delete_item(self, remote_id: str):
        self._request("DELETE", f"{self.items_url}/{remote_id}")


class DirectorySync:
    """Reconciles the local personnel directory with the remote list."""

    def __init__(self, client: RemoteDirectoryClient):
        self.client = client
        self._in_progress = False

    def sync(self, directory) -> SyncReport:
        """Push deletions, pull remote people, then push pending local changes.

        Each record is sent on its own; a failure is collected and leaves the
        record pending. A sync started while another is running is skipped.
        """
        if self._in_progress:
            return SyncReport(skipped=True, errors=["A sync is already running"])

        self._in_progress = True
        try:
            report = SyncReport()
            self._push_deletions(directory, report)
            self._pull(directory, report)
            self._push_changes(directory, report)
        finally:
            self._in_progress = False

        if report.errors:
            logger.warning("[SYNC] Finished with %d error(s)", len(report.errors))
        else:
            logger.info("[SYNC] Created %d, updated %d, deleted %d, pulled %d",
                        report.created, report.updated, report.deleted, report.pulled)
        return report

    def _push_deletions(self, directory, report: SyncReport):
        for remote_id in directory.pending_deletions:
            try:
                self.client.delete_item(remote_id)
            except RemoteSyncError as e:
                report.errors.append(f"Delete {remote_id}: {e}")
                continue
            directory.forget_pending_deletion(remote_id)
            report.deleted += 1

    def _push_changes(self, directory, report: SyncReport):
        for person in directory.list_all():
            if person.sync_state == SyncState.SYNCED:
                continue
            try:
                if person.sync_state == SyncState.PENDING_ADD or not person.remote_id:
                    remote_id = self.client.create_item(person)
                    directory.mark_synced(person.id, remote_id)
                    report.created += 1
                else:
                    self.client.update_item(person)
                    directory.mark_synced(person.id)
                    report.updated += 1
            except RemoteSyncError as e:
                report.errors.append(f"{person.name}: {e}")

    def _pull(self, directory, report: SyncReport):
        try:
            remote_people = self.client.fetch_personnel()
        except RemoteSyncError as e:
            report.errors.append(f"Fetch: {e}")
            return

        pending_deletions = set(directory.pending_deletions)
        for remote in remote_people:
            if remote.remote_id in pending_deletions:
                continue
            local = directory.find_by_name(remote.name)
            if local is None:
                directory.add({
                    "name": remote.name,
                    "group": _group_from_title(remote.job_title),
                    "department": remote.department,
                    "availability_state": UNAVAILABLE,
                    "remote_id": remote.remote_id,
                }, sync_state=SyncState.SYNCED)
                report.pulled += 1
            elif not local.remote_id:
                directory.link_remote(local.id, remote.remote_id)


def _group_from_title(job_title: str) -> PersonnelGroup:
    """Best-effort group for a remote job title."""
    wanted = normalize_name(job_title)
    for group in PersonnelGroup:
        if normalize_name(group.value) == wanted:
            return group
    return PersonnelGroup.OP_NURSING
