"""Bearer-authenticated client for the protected todo-list API.

Classifies every response into an ApiOutcome. Performs no retries: retry and
step-up policy belong to the step-up coordinator.
"""

from __future__ import annotations

import logging

import httpx

from todolist_client.api.models import (
    ApiChallenge,
    ApiFailure,
    ApiOutcome,
    ApiSuccess,
)
from todolist_client.auth.models.errors import INTERACTION_REQUIRED

logger = logging.getLogger(__name__)


class ResourceClient:
    """Issues authenticated HTTP calls against the API base address."""

    def __init__(
        self,
        base_address: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the resource client.

        Args:
            base_address: API base URL, e.g. https://localhost:44321
            timeout: HTTP request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.base_address = base_address.rstrip("/")
        self.timeout = timeout
        self._http_client = httpx.AsyncClient(
            base_url=self.base_address, timeout=timeout, transport=transport
        )

    async def call(
        self,
        method: str,
        path: str,
        bearer_token: str,
        data: dict[str, str] | None = None,
    ) -> ApiOutcome:
        """Call the API with a bearer token and classify the response.

        Args:
            method: HTTP method
            path: Path relative to the base address
            bearer_token: Access token to present
            data: Optional form fields, sent application/x-www-form-urlencoded

        Returns:
            ApiSuccess for 2xx, ApiChallenge for 400 interaction_required,
            ApiFailure for everything else
        """
        headers = {"Authorization": f"Bearer {bearer_token}"}
        logger.debug(f"{method} {path}")

        try:
            response = await self._http_client.request(
                method, path, headers=headers, data=data
            )
        except httpx.HTTPError as e:
            logger.error(f"HTTP error calling {path}: {e}")
            return ApiFailure(status_code=None, reason=str(e))

        return self._classify(path, response)

    def _classify(self, path: str, response: httpx.Response) -> ApiOutcome:
        if response.is_success:
            return ApiSuccess(status_code=response.status_code, body=response.text)

        if (
            response.status_code == 400
            and response.reason_phrase == INTERACTION_REQUIRED
        ):
            challenge = ApiChallenge(payload=response.text)
            if challenge.is_blank():
                logger.warning(f"{path} returned interaction_required with no claims")
            else:
                logger.info(f"{path} returned a claims challenge")
            return challenge

        logger.warning(
            f"{path} failed with {response.status_code}: {response.reason_phrase}"
        )
        return ApiFailure(
            status_code=response.status_code, reason=response.reason_phrase
        )

    async def close(self) -> None:
        """Close the HTTP client and clean up resources."""
        await self._http_client.aclose()
