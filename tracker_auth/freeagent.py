"""
Accounting API calls the tracker needs to post time: current user, clients,
projects, tasks and timeslips. Everything goes through the authenticated request
client; non-2xx answers are raised here as ApiError with the API's error body.
"""
import logging
from datetime import date
from typing import Any

import httpx

from tracker_auth.api_client import AuthenticatedRequestClient
from tracker_auth.errors import ApiError

logger = logging.getLogger(__name__)


def _payload(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text or None


class FreeAgentApi:
    def __init__(self, requests: AuthenticatedRequestClient):
        self._requests = requests
        self._current_user: dict | None = None

    async def _call(self, endpoint: str, method: str = "GET", **kwargs: Any) -> dict:
        response = await self._requests.request(endpoint, method, **kwargs)
        if not response.is_success:
            raise ApiError(response.status_code, _payload(response))
        data = _payload(response)
        return data if isinstance(data, dict) else {}

    async def get_current_user(self, force_refresh: bool = False) -> dict:
        if self._current_user is None or force_refresh:
            data = await self._call("/users/me")
            self._current_user = data.get("user") or {}
        return self._current_user

    async def get_contacts(self) -> list[dict]:
        """Contacts that can own projects, sorted by name."""
        data = await self._call("/contacts", params={"view": "clients", "sort": "name"})
        return data.get("contacts", [])

    async def get_projects(self, contact_url: str | None = None) -> list[dict]:
        """Active projects, optionally for one contact."""
        params = {"view": "active", "sort": "name"}
        if contact_url:
            params["contact"] = contact_url
        data = await self._call("/projects", params=params)
        return data.get("projects", [])

    async def get_tasks(self, project_url: str) -> list[dict]:
        data = await self._call("/tasks", params={"project": project_url, "view": "active", "sort": "name"})
        return data.get("tasks", [])

    async def create_task(self, project_url: str, name: str = "General Work", is_billable: bool = True) -> dict:
        body = {"task": {"name": name, "is_billable": is_billable, "status": "Active"}}
        data = await self._call("/tasks", "POST", params={"project": project_url}, json=body)
        logger.info("Created task %r for project %s", name, project_url)
        return data.get("task", {})

    async def get_tasks_with_default(self, project_url: str) -> list[dict]:
        """Active tasks for a project; creates a 'General Work' task when there are none."""
        tasks = await self.get_tasks(project_url)
        if not tasks:
            tasks = [await self.create_task(project_url)]
        return tasks

    async def create_timeslip(
        self,
        project_url: str,
        task_url: str,
        hours: float,
        comment: str = "",
        dated_on: date | None = None,
    ) -> dict:
        """Post a billable timeslip for the current user."""
        if hours <= 0:
            raise ValueError("hours must be positive")
        if not project_url or not task_url:
            raise ValueError("project_url and task_url are required")
        user = await self.get_current_user()
        body = {
            "timeslip": {
                "task": task_url,
                "user": user.get("url"),
                "project": project_url,
                "dated_on": (dated_on or date.today()).isoformat(),
                "hours": hours,
                "comment": comment or "Auto-tracked time entry",
            }
        }
        data = await self._call("/timeslips", "POST", json=body)
        timeslip = data.get("timeslip", {})
        logger.info("Created timeslip %s (%s h)", timeslip.get("url"), timeslip.get("hours"))
        return timeslip
