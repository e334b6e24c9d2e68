import asyncio
import logging
import httpx
from typing import Any, Dict, Optional
from urllib.parse import unquote_plus

from pydantic import BaseModel

from dinkassa_sync.core.config import get_settings
from dinkassa_sync.core.exceptions import TransportError

logger = logging.getLogger(__name__)


class RemoteResponse(BaseModel):
    """Status and parsed body of one Dinkassa.se response"""
    status_code: int
    body: Optional[Any] = None

    @property
    def failed(self) -> bool:
        return self.status_code >= 400


class DinkassaClient:
    """
    Purpose: Asynchronous client for the Dinkassa.se REST API.

    Functionality: Builds and executes exactly one request per call (httpx):
                - URL is the configured base URL, the controller (resource path) and
                  optionally the Dinkassa id of the entity as a last path segment.
                - Identity headers (MachineId, MachineKey, IntegratorId) are sent with every
                  request; request-specific headers override them on collision.
                - The body arrives URL-encoded from the trigger and is decoded before sending.
                - TLS peer verification follows the scheme of the inbound request that
                  triggered the call.
                - Connection and whole-request timeouts are enforced separately.

    The client never raises on HTTP error statuses; those are returned as data. Only
    failures to obtain a response at all raise TransportError.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        machine_id: Optional[str] = None,
        machine_key: Optional[str] = None,
        integrator_id: Optional[str] = None,
        connect_timeout: Optional[float] = None,
        request_timeout: Optional[float] = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.DINKASSA_API_URL).rstrip('/')
        self.machine_id = machine_id if machine_id is not None else settings.MACHINE_ID
        self.machine_key = machine_key if machine_key is not None else settings.MACHINE_KEY
        self.integrator_id = integrator_id if integrator_id is not None else settings.INTEGRATOR_ID
        self.connect_timeout = connect_timeout or settings.CONNECT_TIMEOUT
        self.request_timeout = request_timeout or settings.REQUEST_TIMEOUT

    def _get_headers(self, extra_headers: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        """Identity headers merged with request headers; request headers win"""
        headers = {
            "MachineId": self.machine_id,
            "MachineKey": self.machine_key,
            "IntegratorId": self.integrator_id,
        }
        if extra_headers:
            headers.update(extra_headers)
        return headers

    def build_url(self, path: str, dinkassa_id: Optional[str] = None) -> str:
        url = f"{self.base_url}/{path.strip('/')}"
        if dinkassa_id:
            url += f"/{dinkassa_id}"
        return url

    @staticmethod
    def _parse_body(response) -> Optional[Any]:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            logger.debug(f"Unparsable response body ignored: {response.text[:200]}")
            return None

    async def execute(
        self,
        method: str,
        path: str,
        dinkassa_id: Optional[str] = None,
        body: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
        verify: bool = True,
        connect_timeout: Optional[float] = None,
        request_timeout: Optional[float] = None,
    ) -> RemoteResponse:
        """
        Send one request to Dinkassa.se

        Args:
            method: HTTP method (GET, POST, PUT, DELETE)
            path: Controller, e.g. 'inventoryitem' or 'category'
            dinkassa_id: Id of the remote entity, appended to the URL when given
            body: URL-encoded payload as received from the trigger
            headers: Request-specific headers
            verify: Whether to verify the server's TLS certificate
            connect_timeout: Seconds allowed to establish the connection
            request_timeout: Seconds allowed for the whole request

        Returns:
            RemoteResponse: status code and parsed JSON body (None if empty/unparsable)

        Raises:
            TransportError: If no response could be obtained
        """
        url = self.build_url(path, dinkassa_id)
        request_headers = self._get_headers(headers)
        connect_timeout = connect_timeout or self.connect_timeout
        request_timeout = request_timeout or self.request_timeout
        content = unquote_plus(body) if body is not None else None

        masked_headers = request_headers.copy()
        if masked_headers.get("MachineKey"):
            masked_headers["MachineKey"] = "[REDACTED]"
        logger.debug(f"Making {method} request to {url}")
        logger.debug(f"Request Headers: {masked_headers}")
        if content:
            logger.debug(f"Data: {content[:500]}...")

        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(request_timeout, connect=connect_timeout),
                verify=verify,
            ) as client:
                response = await asyncio.wait_for(
                    client.request(
                        method=method,
                        url=url,
                        headers=request_headers,
                        content=content,
                    ),
                    timeout=request_timeout,
                )
        except httpx.TimeoutException as e:
            logger.error(f"Timeout error: {str(e)}")
            raise TransportError(f"Request timed out: {str(e)}") from e
        except asyncio.TimeoutError as e:
            logger.error(f"Request to {url} exceeded {request_timeout}s")
            raise TransportError(f"Request timed out after {request_timeout}s") from e
        except httpx.HTTPError as e:
            logger.error(f"Network error: {str(e)}")
            raise TransportError(f"Network error: {str(e)}") from e
        except httpx.InvalidURL as e:
            logger.error(f"Invalid Dinkassa.se URL {url}: {str(e)}")
            raise TransportError(f"Invalid URL: {str(e)}") from e

        if response.status_code >= 400:
            logger.warning(f"Dinkassa.se answered {response.status_code} for {method} {url}")

        return RemoteResponse(status_code=response.status_code, body=self._parse_body(response))
