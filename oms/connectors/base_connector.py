"""
Base connector class for the external REST APIs (carrier, CRM)
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional
from datetime import datetime
import time

import aiohttp

from oms.exceptions import UpstreamError, CarrierNotFound
from oms.utils.logger import log


def extract_error_message(payload: Any, service: str, status: int) -> str:
    """Best-effort human message from an upstream error body."""
    if isinstance(payload, dict):
        errors = payload.get("errors")
        if isinstance(errors, list) and errors:
            parts = []
            for e in errors:
                if isinstance(e, dict):
                    field = e.get("field")
                    message = e.get("message") or e.get("detail") or str(e)
                    parts.append(f"{field}: {message}" if field else message)
                else:
                    parts.append(str(e))
            return "; ".join(parts)
        error = payload.get("error")
        if isinstance(error, dict) and error.get("message"):
            return f"{service} error: {error['message']}"
        if isinstance(error, str):
            return f"{service} error: {error}"
        if payload.get("message"):
            return f"{service} error: {payload['message']}"
    elif isinstance(payload, str) and payload.strip():
        return f"{service} error: {payload.strip()[:300]}"
    return f"{service} API error: {status}"


class BaseConnector(ABC):
    """Base class for HTTP connectors. No automatic retries."""

    def __init__(self, name: str):
        self.name = name
        self.last_call = None
        self.call_count = 0
        self.error_count = 0

    @abstractmethod
    def is_configured(self) -> bool:
        """Credentials present"""
        pass

    def _auth(self) -> Optional[aiohttp.BasicAuth]:
        return None

    def _headers(self) -> Dict[str, str]:
        return {"Accept": "application/json"}

    async def _request(
        self,
        method: str,
        url: str,
        *,
        json: Optional[dict] = None,
        params: Optional[dict] = None,
        raw: bool = False,
        not_found_message: Optional[str] = None,
    ) -> Any:
        """
        Perform one HTTP call and return the decoded JSON body (or bytes when raw).

        Raises:
            CarrierNotFound: on 404 when not_found_message is given
            UpstreamError: on any other non-2xx status or transport failure
        """
        if not self.is_configured():
            raise UpstreamError(f"{self.name} API credentials not configured", service=self.name)

        self.call_count += 1
        self.last_call = datetime.utcnow()
        start_time = time.time()
        try:
            async with aiohttp.ClientSession() as session:
                async with session.request(
                    method,
                    url,
                    json=json,
                    params=params,
                    headers=self._headers(),
                    auth=self._auth(),
                ) as response:
                    if response.status == 404 and not_found_message:
                        raise CarrierNotFound(not_found_message, service=self.name, upstream_status=404)
                    if response.status >= 400:
                        try:
                            payload = await response.json(content_type=None)
                        except ValueError:
                            payload = await response.text()
                        message = extract_error_message(payload, self.name, response.status)
                        raise UpstreamError(message, service=self.name, upstream_status=response.status)
                    if raw:
                        return await response.read()
                    return await response.json(content_type=None)
        except CarrierNotFound as e:
            log.info(f"{self.name} {method} {url}: {e.message}")
            raise
        except UpstreamError as e:
            self.error_count += 1
            log.error(f"{self.name} {method} {url} failed: {e.message}")
            raise
        except aiohttp.ClientError as e:
            self.error_count += 1
            log.error(f"{self.name} {method} {url} transport error: {e}")
            raise UpstreamError(f"{self.name} request failed: {e}", service=self.name) from e
        finally:
            log.debug(f"{self.name} {method} {url} took {time.time() - start_time:.2f}s")

    def get_status(self) -> Dict[str, Any]:
        """Get connector status"""
        return {
            "name": self.name,
            "configured": self.is_configured(),
            "last_call": self.last_call,
            "call_count": self.call_count,
            "error_count": self.error_count,
            "error_rate": self.error_count / max(self.call_count, 1),
        }
