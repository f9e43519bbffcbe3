# creator_match/infrastructure/instagram_client.py
from typing import Any, Dict, Optional

import httpx
import structlog

from creator_match.config import InstagramSettings
from creator_match.errors import ProviderError

logger = structlog.get_logger(__name__)

GENERIC_PROVIDER_MESSAGE = "Instagram API request failed"


def _parse_error(response: httpx.Response) -> ProviderError:
    """
    Instagram answers errors in two shapes: the Graph API's
    {"error": {"message", "type", "code"}} and the OAuth host's flat
    {"error_type", "code", "error_message"}.
    """
    try:
        payload = response.json()
    except ValueError:
        payload = {}

    message = None
    code = None
    error_type = None
    if isinstance(payload, dict):
        err = payload.get("error")
        if isinstance(err, dict):
            message = err.get("message")
            code = err.get("code")
            error_type = err.get("type")
        else:
            message = payload.get("error_message") or (err if isinstance(err, str) else None)
            code = payload.get("code")
            error_type = payload.get("error_type")

    return ProviderError(
        message or f"{GENERIC_PROVIDER_MESSAGE} ({response.status_code})",
        status=response.status_code,
        code=code,
        error_type=error_type,
        details=message,
    )


class InstagramGraphClient:
    """
    Thin async wrapper over the Instagram OAuth and Graph hosts.
    Every failure, including timeouts, surfaces as ProviderError.
    """

    def __init__(self, http: httpx.AsyncClient, settings: InstagramSettings):
        self.http = http
        self.settings = settings

    def graph_url(self, path: str) -> str:
        return f"{self.settings.graph_base_url}/{path.lstrip('/')}"

    def oauth_url(self, path: str) -> str:
        return f"{self.settings.oauth_base_url}/{path.lstrip('/')}"

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return await self._request("GET", self.graph_url(path), params=params)

    async def post_form(self, url: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", url, data=data)

    async def _request(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        # query strings carry access tokens, only the path is logged
        path = httpx.URL(url).path
        try:
            response = await self.http.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            logger.warning("instagram_request_timeout", method=method, path=path)
            raise ProviderError(
                "Instagram API request timed out", status=504, error_type="timeout"
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning("instagram_request_transport_error", method=method, path=path, error=type(exc).__name__)
            raise ProviderError(GENERIC_PROVIDER_MESSAGE, status=502, error_type="transport") from exc

        if response.status_code >= 400:
            error = _parse_error(response)
            logger.info(
                "instagram_request_rejected",
                method=method,
                path=path,
                status=error.status,
                code=error.code,
                error_type=error.error_type,
            )
            raise error

        try:
            body = response.json()
        except ValueError as exc:
            raise ProviderError("Instagram API returned a non-JSON body", status=response.status_code) from exc
        if not isinstance(body, dict):
            raise ProviderError("Instagram API returned an unexpected body", status=response.status_code)
        return body
