# Unless explicitly stated otherwise all files in this repository are licensed under the Apache-2 License.

# This product includes software developed at Datadog (https://www.datadoghq.com/) Copyright 2025 Datadog, Inc.

import json
import ssl
import time
import urllib.request
from typing import Any, Optional
from urllib.error import HTTPError, URLError

from .logs import log

DEFAULT_RETRY_STATUS_CODES = frozenset({429, 500, 502, 503, 504})
REQUEST_TIMEOUT = 60  # seconds


def request(
    method: str,
    url: str,
    body: Optional[dict[str, Any]] = None,
    headers: Optional[dict[str, str]] = None,
    max_retries: int = 3,
    base_delay: float = 1.0,
    retry_status_codes: frozenset[int] = DEFAULT_RETRY_STATUS_CODES,
) -> tuple[str, int]:
    """Submit a request with retry logic. Non-retryable HTTP error statuses are returned to the caller, not raised."""
    if headers is None:
        headers = {}

    for attempt in range(max_retries):
        req = urllib.request.Request(
            url,
            method=method,
            headers=headers,
            data=json.dumps(body).encode("utf-8") if body is not None else None,
        )

        try:
            with urllib.request.urlopen(req, context=ssl.create_default_context(), timeout=REQUEST_TIMEOUT) as response:
                return response.read().decode("utf-8"), response.status
        except HTTPError as e:
            data, status = e.read().decode("utf-8"), e.code
            if status in retry_status_codes:
                if attempt < max_retries - 1:
                    delay = base_delay * (2**attempt)
                    log.warning(f"{method} {url} returned {status}. Retrying in {delay} seconds...")
                    time.sleep(delay)
                    continue

                raise RuntimeError(f"HTTP error {status} from {method} {url}: {data}") from e

            return data, status
        except URLError as e:
            if attempt < max_retries - 1:
                time.sleep(base_delay * (2**attempt))
                continue

            raise RuntimeError(f"Network error after {max_retries} attempts: {e.reason}") from e

    # We should never hit this.
    raise RuntimeError(f"{method} {url}: exceeded max retries")


def arm_request(
    method: str, url: str, access_token: str, body: Optional[dict[str, Any]] = None
) -> tuple[str, int]:
    """Submit a request to Azure Resource Manager with a bearer token."""
    log.debug(f"{method} {url}")
    return request(
        method,
        url,
        body,
        {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {access_token}",
        },
    )
