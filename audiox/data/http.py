from typing import Any, Dict, Optional

import httpx

from audiox.errors import UpstreamError, UpstreamRateLimited


async def request_json(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    service: str,
    params: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
    data: Optional[Dict[str, Any]] = None,
    auth: Optional[httpx.Auth] = None,
) -> Dict[str, Any]:
    """
    Make one upstream call and return its JSON body.

    HTTP 429 becomes UpstreamRateLimited; any other HTTP status error,
    transport failure or undecodable body becomes UpstreamError.
    """
    try:
        response = await client.request(
            method, url, params=params, headers=headers, data=data, auth=auth
        )
        response.raise_for_status()
        return response.json()
    except httpx.HTTPStatusError as exc:
        if exc.response.status_code == 429:
            raise UpstreamRateLimited(f"{service} rate limit hit") from exc
        raise UpstreamError(
            f"{service} responded with HTTP {exc.response.status_code}"
        ) from exc
    except httpx.HTTPError as exc:
        raise UpstreamError(f"{service} request failed: {exc}") from exc
    except ValueError as exc:
        raise UpstreamError(f"{service} returned invalid JSON") from exc
