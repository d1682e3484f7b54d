"""LINE Messaging API push channel."""

from __future__ import annotations

from typing import Any

import httpx

from watch_spine.core.errors import DeliveryError, NetworkError, RateLimitError
from watch_spine.notify.base import BaseChannel
from watch_spine.notify.protocol import ChannelType, DeliveryResult

LINE_PUSH_URL = "https://api.line.me/v2/bot/message/push"


class LinePushChannel(BaseChannel):
    """
    Push messages to a LINE user or group.

    Status mapping:
        429       -> RateLimitError (transient)
        other 4xx -> DeliveryError (invalid recipient, malformed payload)
        5xx       -> NetworkError (transient)
        transport -> NetworkError
    """

    def __init__(
        self,
        access_token: str,
        name: str = "line",
        *,
        timeout: float = 6.0,
        client: httpx.Client | None = None,
        endpoint: str = LINE_PUSH_URL,
        **kwargs: Any,
    ):
        super().__init__(name, ChannelType.LINE, **kwargs)
        self._endpoint = endpoint
        self._client = client or httpx.Client(timeout=timeout)
        self._headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
        }

    def close(self) -> None:
        self._client.close()

    @staticmethod
    def _error_detail(response: httpx.Response) -> Any:
        try:
            body = response.json()
        except ValueError:
            return response.text[:200]
        return body.get("message", body) if isinstance(body, dict) else body

    def send(self, recipient: str, payloads: list[dict[str, Any]]) -> DeliveryResult:
        """Push *payloads* (at most five) to *recipient*."""
        try:
            response = self._client.post(
                self._endpoint,
                json={"to": recipient, "messages": payloads},
                headers=self._headers,
            )
        except httpx.HTTPError as e:
            return DeliveryResult.fail(
                self._name, recipient, NetworkError(f"LINE push failed: {e}", cause=e)
            )

        status = response.status_code
        if status < 300:
            return DeliveryResult.ok(self._name, recipient, len(payloads), status=status)

        detail = self._error_detail(response)
        error: Exception
        if status == 429:
            retry_after = response.headers.get("Retry-After")
            error = RateLimitError(
                f"LINE push rate limited: {detail}",
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
                context={"recipient": recipient, "status": status},
            )
        elif status >= 500:
            error = NetworkError(
                f"LINE push server error {status}: {detail}",
                context={"recipient": recipient, "status": status},
            )
        else:
            error = DeliveryError(
                f"LINE push rejected with {status}: {detail}",
                recipient=recipient,
                status=status,
                detail=detail,
            )
        return DeliveryResult.fail(self._name, recipient, error, status=status)
