"""
Endercom SDK - HTTP client for the Endercom platform API.

Provides both synchronous and asynchronous clients. Function registration is
async-only since it is driven by the function runtime's event loop.
"""

from typing import Any, Optional

import httpx

from .config import DEFAULT_TIMEOUT
from .exceptions import (
    APIError,
    AuthenticationError,
    NotFoundError,
    RegistrationError,
)
from .models import FunctionIdentity, Message

FUNCTIONS_PATH = "/api/agent-functions"


def _build_headers(api_key: Optional[str]) -> dict[str, str]:
    headers = {"Content-Type": "application/json"}
    if api_key:
        headers["Authorization"] = f"Bearer {api_key}"
    return headers


def _json_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return None


def _handle_response(response: httpx.Response) -> Any:
    """Handle HTTP response and raise appropriate exceptions."""
    data = _json_body(response)
    if response.status_code == 401:
        raise AuthenticationError(
            "Invalid or missing API key", status_code=401, response=data
        )
    elif response.status_code == 404:
        raise NotFoundError("Resource not found", status_code=404, response=data)
    elif response.status_code >= 400:
        message = data.get("error") if isinstance(data, dict) else None
        raise APIError(
            message or f"Request failed with status {response.status_code}",
            status_code=response.status_code,
            response=data,
        )
    return data if data is not None else {}


def _extract_messages(data: Any) -> list[Message]:
    if isinstance(data, dict):
        data = data.get("data", data)
    if isinstance(data, dict):
        data = data.get("messages", [])
    return [Message.from_dict(m) for m in data or []]


class EndercomClient:
    """
    Synchronous client for the Endercom messaging API.

    Example:
        ```python
        with EndercomClient(api_key="your-api-key") as client:
            client.send_message("freq-123", "Hello everyone!")
        ```
    """

    def __init__(
        self,
        base_url: str = "https://endercom.io",
        api_key: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self._client = httpx.Client(
            base_url=self.base_url,
            headers=_build_headers(api_key),
            timeout=timeout,
        )

    def poll_messages(self, frequency_id: str) -> list[Message]:
        """Fetch the messages waiting for this agent on a frequency."""
        response = self._client.get(f"/api/{frequency_id}/messages/poll")
        return _extract_messages(_handle_response(response))

    def respond_to_message(
        self, frequency_id: str, message_id: str, content: str
    ) -> dict:
        """Post a reply to a previously polled message."""
        response = self._client.post(
            f"/api/{frequency_id}/messages/respond",
            json={"message_id": message_id, "response": content},
        )
        return _handle_response(response)

    def send_message(
        self, frequency_id: str, content: str, target_agent: Optional[str] = None
    ) -> dict:
        """
        Send a message on a frequency.

        Args:
            frequency_id: The frequency to publish on.
            content: Message text.
            target_agent: Optional agent ID; broadcasts to all agents when omitted.
        """
        payload: dict[str, Any] = {"content": content}
        if target_agent:
            payload["target_agent"] = target_agent
        response = self._client.post(
            f"/api/{frequency_id}/messages/send", json=payload
        )
        return _handle_response(response)

    def close(self) -> None:
        """Close the HTTP client connection."""
        self._client.close()

    def __enter__(self) -> "EndercomClient":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()


class AsyncEndercomClient:
    """
    Asynchronous client for the Endercom platform API.

    Example:
        ```python
        async with AsyncEndercomClient("http://localhost:3000") as client:
            body = await client.register_function(
                FunctionIdentity("Echo"), "http://localhost:3001/execute"
            )
            await client.unregister_function(body["data"]["id"])
        ```
    """

    def __init__(
        self,
        base_url: str = "https://endercom.io",
        api_key: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=_build_headers(api_key),
            timeout=timeout,
        )

    # ==================== Agent Functions ====================

    async def register_function(
        self, identity: FunctionIdentity, endpoint: str
    ) -> dict[str, Any]:
        """
        Register a function's execute endpoint with the platform.

        Returns:
            The platform's response body, whose ``data.id`` identifies the function.

        Raises:
            RegistrationError: On transport failure, timeout, a status other
                than 201, or a body without ``success`` and ``data.id``.
        """
        try:
            response = await self._client.post(
                FUNCTIONS_PATH, json=identity.to_registration(endpoint)
            )
        except httpx.HTTPError as e:
            raise RegistrationError(
                f"Platform registration failed: {e}", cause=e
            ) from e

        data = _json_body(response)
        if (
            response.status_code == 201
            and isinstance(data, dict)
            and data.get("success")
            and isinstance(data.get("data"), dict)
            and data["data"].get("id") is not None
        ):
            return data

        error = data.get("error") if isinstance(data, dict) else None
        if response.status_code != 201 and not error:
            error = f"HTTP {response.status_code}"
        raise RegistrationError(
            f"Platform registration failed: {error or 'Unknown error'}",
            status_code=response.status_code,
            response=data,
        )

    async def unregister_function(self, function_id: str) -> None:
        """
        Remove a function registration from the platform.

        Raises:
            APIError: If the platform answers with anything but HTTP 200.
            httpx.HTTPError: On transport failure or timeout.
        """
        response = await self._client.delete(f"{FUNCTIONS_PATH}/{function_id}")
        if response.status_code != 200:
            raise APIError(
                f"Failed to unregister: HTTP {response.status_code}",
                status_code=response.status_code,
                response=_json_body(response),
            )

    # ==================== Messaging ====================

    async def poll_messages(self, frequency_id: str) -> list[Message]:
        """Fetch the messages waiting for this agent on a frequency."""
        response = await self._client.get(f"/api/{frequency_id}/messages/poll")
        return _extract_messages(_handle_response(response))

    async def respond_to_message(
        self, frequency_id: str, message_id: str, content: str
    ) -> dict:
        """Post a reply to a previously polled message."""
        response = await self._client.post(
            f"/api/{frequency_id}/messages/respond",
            json={"message_id": message_id, "response": content},
        )
        return _handle_response(response)

    async def send_message(
        self, frequency_id: str, content: str, target_agent: Optional[str] = None
    ) -> dict:
        """Send a message on a frequency."""
        payload: dict[str, Any] = {"content": content}
        if target_agent:
            payload["target_agent"] = target_agent
        response = await self._client.post(
            f"/api/{frequency_id}/messages/send", json=payload
        )
        return _handle_response(response)

    async def close(self) -> None:
        """Close the HTTP client connection."""
        await self._client.aclose()

    async def __aenter__(self) -> "AsyncEndercomClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()
