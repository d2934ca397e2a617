# v0_mcp/external_services/v0_client.py
import json
import logging
from typing import Any, Callable, Dict, List, Optional

import httpx

from ..settings import settings

logger = logging.getLogger(__name__)


class V0APIError(Exception):
    """Non-2xx response (or transport failure) from the v0 API."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.body = body


class V0Client:
    """Thin async client for the v0 Platform API."""

    def __init__(
        self,
        api_key: str,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not api_key:
            raise ValueError("V0Client requires an API key.")
        self.base_url = (base_url or settings.v0_api_base_url).rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout or settings.v0_api_timeout_seconds,
            transport=transport,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
                "User-Agent": f"v0-mcp/{settings.app_version}",
            },
        )

    async def __aenter__(self) -> "V0Client":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        json_payload: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Performs one API call and returns the decoded JSON body.

        Raises:
            V0APIError: On a non-2xx status, an undecodable body or a transport error
        """
        logger.debug(f"v0 API Request: {method} {path} | Params: {params} | JSON: {json_payload is not None}")
        try:
            response = await self._client.request(method, path, json=json_payload, params=params)
        except httpx.RequestError as e:
            logger.error(f"v0 API RequestError: {method} {path} - Error: {e}")
            raise V0APIError(f"Connection error: {e}") from e

        if 200 <= response.status_code < 300:
            if response.status_code == 204 or not response.content:
                return {}
            try:
                return response.json()
            except json.JSONDecodeError as e:
                logger.error(f"v0 API Response: {method} {path} -> {response.status_code} | Failed to decode JSON.")
                raise V0APIError("Failed to decode JSON response", response.status_code) from e

        body: Any = response.text
        error_text = response.text or response.reason_phrase
        if response.content:
            try:
                body = response.json()
                error_field = body.get("error") if isinstance(body, dict) else None
                if isinstance(error_field, dict):
                    error_text = error_field.get("message") or error_text
                elif isinstance(error_field, str):
                    error_text = error_field
                elif isinstance(body, dict) and body.get("message"):
                    error_text = body["message"]
            except json.JSONDecodeError:
                pass
        logger.error(f"v0 API HTTP Error: {method} {path} - Status {response.status_code} - {error_text}")
        raise V0APIError(f"HTTP {response.status_code}: {error_text}", response.status_code, body)

    # Chats

    async def create_chat(
        self,
        message: str,
        system: Optional[str] = None,
        chat_privacy: Optional[str] = None,
        project_id: Optional[str] = None,
        model_configuration: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"message": message}
        if system:
            payload["system"] = system
        if chat_privacy:
            payload["chatPrivacy"] = chat_privacy
        if project_id:
            payload["projectId"] = project_id
        if model_configuration:
            payload["modelConfiguration"] = model_configuration
        return await self._request("POST", "/chats", json_payload=payload)

    async def send_message(
        self,
        chat_id: str,
        message: str,
        model_configuration: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"message": message}
        if model_configuration:
            payload["modelConfiguration"] = model_configuration
        return await self._request("POST", f"/chats/{chat_id}/messages", json_payload=payload)

    async def find_chats(
        self,
        limit: Optional[str] = None,
        offset: Optional[str] = None,
        is_favorite: Optional[str] = None,
    ) -> Dict[str, Any]:
        params = {k: v for k, v in {"limit": limit, "offset": offset, "isFavorite": is_favorite}.items() if v is not None}
        return await self._request("GET", "/chats", params=params or None)

    async def favorite_chat(self, chat_id: str, is_favorite: bool) -> Dict[str, Any]:
        return await self._request("PUT", f"/chats/{chat_id}/favorite", json_payload={"isFavorite": is_favorite})

    async def get_chat(self, chat_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/chats/{chat_id}")

    async def init_chat(
        self,
        files: List[Dict[str, Any]],
        chat_privacy: Optional[str] = None,
        project_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"type": "files", "files": files}
        if chat_privacy:
            payload["chatPrivacy"] = chat_privacy
        if project_id:
            payload["projectId"] = project_id
        return await self._request("POST", "/chats/init", json_payload=payload)

    # Projects

    async def create_project(self, name: str, description: Optional[str] = None) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"name": name}
        if description:
            payload["description"] = description
        return await self._request("POST", "/projects", json_payload=payload)

    # User

    async def get_user(self) -> Dict[str, Any]:
        return await self._request("GET", "/user")

    async def get_user_plan(self) -> Dict[str, Any]:
        return await self._request("GET", "/user/plan")

    async def get_user_scopes(self) -> Any:
        return await self._request("GET", "/user/scopes")


V0ClientFactory = Callable[[str], V0Client]
