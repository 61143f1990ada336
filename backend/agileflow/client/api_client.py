"""
Agile Flow - Async API Client
Thin aiohttp wrapper over the REST surface and the realtime feed.

    async with AgileFlowAPIClient("http://localhost:5000/api") as client:
        await client.login("hod@dept.edu", "secret123")
        response = await client.list_tasks(status="Pending")
"""
import aiohttp
import asyncio
import json
from typing import Any, AsyncIterator, Dict, Optional
from dataclasses import dataclass


DEFAULT_TIMEOUT = 30


@dataclass
class APIResponse:
    """API Response wrapper"""
    status: int
    data: Any
    headers: Dict[str, str]
    success: bool

    @property
    def json(self) -> Any:
        return self.data

    @property
    def error(self) -> Optional[str]:
        if self.success or not isinstance(self.data, dict):
            return None
        return self.data.get("error")


class AgileFlowAPIClient:
    """API Client for the Agile Flow backend"""

    def __init__(self, base_url: str = "http://localhost:5000/api", timeout: int = DEFAULT_TIMEOUT):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.token: Optional[str] = None
        self.refresh_token: Optional[str] = None
        self.session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self):
        self.session = aiohttp.ClientSession()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self.session:
            await self.session.close()

    def _get_headers(self, auth: bool = True) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if auth and self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _request(
        self,
        method: str,
        endpoint: str,
        data: Optional[Dict] = None,
        params: Optional[Dict] = None,
        auth: bool = True,
    ) -> APIResponse:
        """Make HTTP request; transport failures come back as status 0"""
        url = f"{self.base_url}{endpoint}"
        timeout_obj = aiohttp.ClientTimeout(total=self.timeout)
        if params:
            params = {k: v for k, v in params.items() if v is not None}

        try:
            async with self.session.request(
                method, url, json=data, params=params, headers=self._get_headers(auth), timeout=timeout_obj
            ) as response:
                try:
                    response_data = await response.json()
                except (aiohttp.ContentTypeError, json.JSONDecodeError):
                    response_data = await response.text()

                return APIResponse(
                    status=response.status,
                    data=response_data,
                    headers=dict(response.headers),
                    success=200 <= response.status < 300
                )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            return APIResponse(
                status=0,
                data={"error": str(e)},
                headers={},
                success=False
            )

    # ==================== Health ====================
    async def health_check(self) -> APIResponse:
        return await self._request("GET", "/health", auth=False)

    # ==================== Authentication ====================
    async def register(self, email: str, password: str, name: str, role: str) -> APIResponse:
        data = {"email": email, "password": password, "name": name, "role": role}
        return await self._request("POST", "/auth/register", data=data, auth=False)

    async def login(self, email: str, password: str) -> APIResponse:
        """Login and keep the token pair for later calls"""
        data = {"email": email, "password": password}
        response = await self._request("POST", "/auth/login", data=data, auth=False)

        if response.success and isinstance(response.data, dict):
            self.token = response.data.get("access_token")
            self.refresh_token = response.data.get("refresh_token")

        return response

    async def refresh_access_token(self) -> APIResponse:
        data = {"refresh_token": self.refresh_token}
        response = await self._request("POST", "/auth/refresh", data=data, auth=False)

        if response.success and isinstance(response.data, dict):
            self.token = response.data.get("access_token")
            self.refresh_token = response.data.get("refresh_token", self.refresh_token)

        return response

    async def me(self) -> APIResponse:
        return await self._request("GET", "/auth/me")

    def logout(self) -> None:
        self.token = None
        self.refresh_token = None

    # ==================== Users ====================
    async def list_users(self) -> APIResponse:
        return await self._request("GET", "/users")

    async def list_users_by_role(self, role: str) -> APIResponse:
        return await self._request("GET", f"/users/role/{role}")

    async def get_user(self, user_id: str) -> APIResponse:
        return await self._request("GET", f"/users/{user_id}")

    async def create_user(self, email: str, password: str, name: str, role: str) -> APIResponse:
        data = {"email": email, "password": password, "name": name, "role": role}
        return await self._request("POST", "/users", data=data)

    async def update_user(self, user_id: str, **fields) -> APIResponse:
        return await self._request("PUT", f"/users/{user_id}", data=fields)

    async def delete_user(self, user_id: str) -> APIResponse:
        return await self._request("DELETE", f"/users/{user_id}")

    async def heartbeat(self, online_status: bool = True) -> APIResponse:
        return await self._request("PATCH", "/users/status/online", data={"online_status": online_status})

    # ==================== Tasks ====================
    async def list_tasks(
        self,
        status: Optional[str] = None,
        assigned_to: Optional[str] = None,
        assigned_by: Optional[str] = None,
    ) -> APIResponse:
        params = {"status": status, "assigned_to": assigned_to, "assigned_by": assigned_by}
        return await self._request("GET", "/tasks", params=params)

    async def get_task(self, task_id: str) -> APIResponse:
        return await self._request("GET", f"/tasks/{task_id}")

    async def create_task(
        self,
        title: str,
        assigned_to: str,
        description: Optional[str] = None,
        deadline: Optional[str] = None,
    ) -> APIResponse:
        data = {"title": title, "assigned_to": assigned_to}
        if description is not None:
            data["description"] = description
        if deadline is not None:
            data["deadline"] = deadline
        return await self._request("POST", "/tasks", data=data)

    async def update_task(self, task_id: str, **fields) -> APIResponse:
        return await self._request("PUT", f"/tasks/{task_id}", data=fields)

    async def delete_task(self, task_id: str) -> APIResponse:
        return await self._request("DELETE", f"/tasks/{task_id}")

    async def task_stats(self) -> APIResponse:
        return await self._request("GET", "/tasks/stats")

    # ==================== Messages ====================
    async def list_community_messages(self, limit: Optional[int] = None) -> APIResponse:
        return await self._request("GET", "/messages/community", params={"limit": limit})

    async def send_community_message(self, message: str, client_ref: Optional[str] = None) -> APIResponse:
        data = {"message": message}
        if client_ref:
            data["client_ref"] = client_ref
        return await self._request("POST", "/messages/community", data=data)

    async def list_private_messages(self, other_user_id: Optional[str] = None) -> APIResponse:
        return await self._request("GET", "/messages/private", params={"otherUserId": other_user_id})

    async def send_private_message(
        self, receiver_id: str, message: str, client_ref: Optional[str] = None
    ) -> APIResponse:
        data = {"receiver_id": receiver_id, "message": message}
        if client_ref:
            data["client_ref"] = client_ref
        return await self._request("POST", "/messages/private", data=data)

    async def mark_message_read(self, message_id: str) -> APIResponse:
        return await self._request("PATCH", f"/messages/private/{message_id}/read")

    async def unread_count(self) -> APIResponse:
        return await self._request("GET", "/messages/private/unread-count")

    async def conversations(self) -> APIResponse:
        return await self._request("GET", "/messages/private/conversations")

    # ==================== Realtime ====================
    def realtime_url(self) -> str:
        base = self.base_url.replace("https://", "wss://", 1).replace("http://", "ws://", 1)
        return f"{base}/realtime/ws"

    async def subscribe(self, table: str, event: str = "*") -> AsyncIterator[Dict[str, Any]]:
        """Yield change events for ``table`` until the server closes the socket"""
        params = {"token": self.token or "", "table": table, "event": event}
        async with self.session.ws_connect(self.realtime_url(), params=params) as ws:
            async for msg in ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    if msg.data == "pong":
                        continue
                    yield json.loads(msg.data)
                elif msg.type in (aiohttp.WSMsgType.CLOSED, aiohttp.WSMsgType.ERROR):
                    break
