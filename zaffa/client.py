"""Thin synchronous client for the checklist endpoints.

Works with any ``httpx.Client`` pointed at the service, including FastAPI's
``TestClient``. Item deletes and un-purchases are applied optimistically and
rolled back when the server rejects them; ``poll`` follows the activity
change feed and refreshes the item list when something changed. Given a
refresh token, an expired access token is renewed once and the call retried.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx

from zaffa.services.optimistic import ACTION_DELETE, ACTION_UNPURCHASE, OptimisticItemList

API_PREFIX = "/api/v1"


class ChecklistClientError(Exception):
    def __init__(self, status_code: int, payload: Any) -> None:
        self.status_code = status_code
        self.payload = payload
        message = payload.get("detail") if isinstance(payload, dict) else None
        super().__init__(message or f"Request failed with status {status_code}")


class ChecklistClient:
    def __init__(
        self,
        http: httpx.Client,
        household_id: str,
        access_token: str,
        refresh_token: Optional[str] = None,
    ) -> None:
        self.http = http
        self.household_id = str(household_id)
        self.headers = {"Authorization": f"Bearer {access_token}"}
        self.refresh_token = refresh_token
        self.cursor: Optional[str] = None
        self.state = OptimisticItemList()

    def _url(self, suffix: str) -> str:
        return f"{API_PREFIX}/households/{self.household_id}{suffix}"

    @staticmethod
    def _check(response: httpx.Response) -> httpx.Response:
        if response.status_code >= 400:
            try:
                payload = response.json()
            except ValueError:
                payload = response.text
            raise ChecklistClientError(response.status_code, payload)
        return response

    def renew_token(self) -> None:
        """Swap the refresh token for a new access/refresh pair."""
        if not self.refresh_token:
            raise ChecklistClientError(401, {"detail": "No refresh token available"})
        response = self.http.post(f"{API_PREFIX}/auth/refresh", json={"refresh_token": self.refresh_token})
        tokens = self._check(response).json()
        self.headers = {"Authorization": f"Bearer {tokens['access_token']}"}
        self.refresh_token = tokens["refresh_token"]

    def _request(self, method: str, suffix: str, **kwargs: Any) -> httpx.Response:
        response = self.http.request(method, self._url(suffix), headers=self.headers, **kwargs)
        if response.status_code == 401 and self.refresh_token:
            self.renew_token()
            response = self.http.request(method, self._url(suffix), headers=self.headers, **kwargs)
        return self._check(response)

    @property
    def items(self) -> List[Dict[str, Any]]:
        return self.state.view()

    def refresh(self) -> List[Dict[str, Any]]:
        """Replace the authoritative item list.

        The cursor is read before the items so a change landing in between is
        reported again by the next ``poll`` instead of being skipped.
        """
        latest = self._request("GET", "/activity", params={"limit": 1}).json()
        items: List[Dict[str, Any]] = []
        offset = 0
        while True:
            page = self._request("GET", "/items", params={"limit": 500, "offset": offset}).json()
            items.extend(page["items"])
            offset += len(page["items"])
            if not page["items"] or offset >= page["total"]:
                break
        self.state.reconcile(items)
        self.cursor = latest["next_cursor"] or self.cursor
        return self.items

    def poll(self) -> List[Dict[str, Any]]:
        """Fetch activity newer than the cursor; refresh the items when there is any."""
        if self.cursor is None:
            self.refresh()
            return []
        feed = self._request("GET", "/activity", params={"since": self.cursor, "limit": 200}).json()
        entries = feed["items"]
        if entries:
            self.refresh()
        return entries

    def _optimistic(self, action: str, item_id: str, method: str, suffix: str) -> None:
        op_id = self.state.apply(action, item_id)
        try:
            self._request(method, suffix)
        except (ChecklistClientError, httpx.HTTPError):
            self.state.rollback(op_id)
            raise
        self.state.confirm(op_id)

    def delete_item(self, item_id: str) -> None:
        self._optimistic(ACTION_DELETE, item_id, "DELETE", f"/items/{item_id}")

    def unpurchase_item(self, item_id: str) -> None:
        self._optimistic(ACTION_UNPURCHASE, item_id, "POST", f"/items/{item_id}/unpurchase")
