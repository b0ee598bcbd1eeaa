"""
HTTP relay transport.

WHAT: Messaging network access through an HTTP relay bridge
WHY: Agents run as plain Python processes next to a network bridge
HOW: HTTPX client with retries; inbox polled with an id cursor
"""

import asyncio
import json
from typing import AsyncIterator

import httpx

from ..core.config import settings
from ..models.transport import InboundMessage
from ..utils.logger import get_logger
from .types import (
    TransportDisabledError,
    TransportResponseError,
    TransportStatus,
    TransportTimeoutError,
    TransportUnavailableError,
)

logger = get_logger(__name__)


class HttpRelayTransport:
    """Relay-backed transport with retry logic and inbox polling."""
    
    def __init__(
        self,
        address: str,
        *,
        base_url: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        retry_delay: float | None = None,
        poll_interval: float | None = None
    ):
        """
        Initialize relay transport with httpx client.
        
        Args:
            address: This agent's identity on the network
            base_url: Relay base URL (defaults to settings)
            timeout: Read timeout in seconds
            max_retries: Attempts per request
            retry_delay: Base delay for exponential backoff
            poll_interval: Seconds between inbox polls
        """
        self.address = address
        self.base_url = (base_url or settings.TRANSPORT_RELAY_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.TRANSPORT_TIMEOUT
        self.max_retries = max_retries if max_retries is not None else settings.TRANSPORT_MAX_RETRIES
        self.retry_delay = retry_delay if retry_delay is not None else settings.TRANSPORT_RETRY_DELAY
        self.poll_interval = poll_interval if poll_interval is not None else settings.TRANSPORT_POLL_INTERVAL
        self._cursor: str | None = None
        self._closed = False
        
        self.client = httpx.AsyncClient(
            timeout=httpx.Timeout(5.0, read=self.timeout),
            limits=httpx.Limits(
                max_keepalive_connections=5,
                max_connections=10
            )
        )
    
    async def _request(self, method: str, path: str, **kwargs) -> dict:
        """
        Send a request with retries.
        
        Timeouts, connection errors and 5xx responses are retried with
        exponential backoff; 4xx responses fail immediately.
        """
        if self._closed:
            raise TransportDisabledError(f"Transport for {self.address} is closed")
        
        url = f"{self.base_url}{path}"
        for attempt in range(self.max_retries):
            try:
                response = await self.client.request(method, url, **kwargs)
                response.raise_for_status()
                return response.json()
            
            except httpx.TimeoutException as e:
                logger.warning(f"Relay timeout on {path} (attempt {attempt + 1}/{self.max_retries})")
                if attempt == self.max_retries - 1:
                    raise TransportTimeoutError(f"Request timed out after {self.max_retries} attempts") from e
                await asyncio.sleep(self.retry_delay * (2 ** attempt))
            
            except httpx.ConnectError as e:
                logger.error(f"Relay connection refused (attempt {attempt + 1}/{self.max_retries})")
                if attempt == self.max_retries - 1:
                    raise TransportUnavailableError(f"Relay at {self.base_url} is not reachable") from e
                await asyncio.sleep(self.retry_delay * (2 ** attempt))
            
            except httpx.HTTPStatusError as e:
                if e.response.status_code >= 500:
                    logger.error(f"Relay server error {e.response.status_code} (attempt {attempt + 1}/{self.max_retries})")
                    if attempt == self.max_retries - 1:
                        raise TransportResponseError(f"Server error: {e.response.status_code}") from e
                    await asyncio.sleep(self.retry_delay * (2 ** attempt))
                else:
                    # Client errors don't retry
                    raise TransportResponseError(f"HTTP {e.response.status_code}: {e.response.text}") from e
            
            except json.JSONDecodeError as e:
                logger.error(f"Invalid JSON from relay on {path}: {e}")
                raise TransportResponseError(f"Invalid response format: {e}") from e
        
        raise TransportResponseError("No attempts made (TRANSPORT_MAX_RETRIES < 1)")
    
    async def ping(self) -> TransportStatus:
        """
        Check relay availability.
        
        Returns:
            TransportStatus; never raises
        """
        try:
            response = await self.client.get(f"{self.base_url}/v1/health", timeout=5.0)
            response.raise_for_status()
            return TransportStatus(
                available=True,
                provider="http_relay",
                address=self.address,
                endpoint=self.base_url
            )
        except httpx.TimeoutException:
            logger.warning("Relay ping timed out")
            error = "Connection timeout"
        except httpx.ConnectError:
            logger.warning("Relay not reachable")
            error = "Connection refused - is the relay running?"
        except Exception as e:
            logger.error(f"Relay ping failed: {e}")
            error = str(e)
        
        return TransportStatus(
            available=False,
            provider="http_relay",
            address=self.address,
            endpoint=self.base_url,
            error=error
        )
    
    async def send_message(self, recipient_id: str, text: str) -> str:
        """
        Send a direct message through the relay.
        
        Returns:
            Delivery id assigned by the relay
        
        Raises:
            TransportTimeoutError, TransportUnavailableError, TransportResponseError
        """
        data = await self._request(
            "POST",
            "/v1/messages",
            json={"sender": self.address, "recipient": recipient_id, "content": text}
        )
        try:
            delivery_id = str(data["id"])
        except (KeyError, TypeError) as e:
            raise TransportResponseError(f"Relay response missing id: {data!r}") from e
        
        logger.info(f"Sent message {delivery_id} to {recipient_id[:10]}...")
        return delivery_id
    
    async def fetch_messages(self) -> list[InboundMessage]:
        """
        Fetch one page of inbox messages after the cursor.
        
        Returns:
            Messages in receipt order; the cursor advances past them
        """
        params = {"address": self.address}
        if self._cursor:
            params["after"] = self._cursor
        
        data = await self._request("GET", "/v1/messages", params=params)
        
        messages = []
        for raw in data.get("messages", []):
            if not isinstance(raw, dict):
                logger.warning(f"Skipping malformed relay message: {raw!r}")
                continue
            if "id" in raw:
                self._cursor = str(raw["id"])
            try:
                messages.append(InboundMessage(
                    message_id=str(raw["id"]),
                    sender_id=raw["sender"],
                    thread_id=raw.get("conversation_id") or raw["sender"],
                    text=raw.get("content"),
                ))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed relay message: {e}")

        if data.get("cursor"):
            self._cursor = str(data["cursor"])
        return messages
    
    async def stream_messages(self) -> AsyncIterator[InboundMessage]:
        """Poll the inbox until closed."""
        while not self._closed:
            for message in await self.fetch_messages():
                yield message
            await asyncio.sleep(self.poll_interval)
    
    async def close(self):
        """Close the HTTP client."""
        if self._closed:
            return
        self._closed = True
        await self.client.aclose()
