"""HTTP client for the metered-credential top-up endpoint."""
from __future__ import annotations

import logging
from typing import Any

import httpx

from .constants import Timeouts
from .exceptions import TopupRejectedError

logger = logging.getLogger(__name__)


class HttpTopupClient:
    """Redeems an e-cash token into an API key's prepaid balance.

    ``POST {base_url}v1/wallet/topup?cashu_token=<token>`` authenticated
    with the key itself as a bearer token.
    """

    def __init__(
        self,
        *,
        timeout_seconds: float = Timeouts.TOPUP_HTTP,
        topup_path: str = "v1/wallet/topup",
    ) -> None:
        self._timeout_seconds = timeout_seconds
        self._topup_path = topup_path.lstrip("/")

    @classmethod
    def from_settings(cls, settings) -> "HttpTopupClient":
        return cls(timeout_seconds=settings.topup_timeout_seconds)

    def _url(self, base_url: str) -> str:
        if not base_url:
            raise ValueError("base_url is required")
        if not base_url.endswith("/"):
            base_url = f"{base_url}/"
        return f"{base_url}{self._topup_path}"

    def _headers(self, api_key: str) -> dict[str, str]:
        return {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "Authorization": f"Bearer {api_key}",
            "User-Agent": "satsflow-core/topup-client",
        }

    async def topup(self, base_url: str, api_key: str, token: str) -> dict[str, Any]:
        """
        Submit ``token`` to the credential's top-up endpoint.

        Raises:
            TopupRejectedError: non-2xx response; carries the remote
                ``detail`` when the body is JSON with one.
            httpx.HTTPError: transport failure.
        """
        url = self._url(base_url)
        timeout = httpx.Timeout(self._timeout_seconds)
        async with httpx.AsyncClient(timeout=timeout) as client:
            response = await client.post(
                url,
                headers=self._headers(api_key),
                params={"cashu_token": token},
            )

        if not response.is_success:
            detail = None
            try:
                body = response.json()
                if isinstance(body, dict) and body.get("detail"):
                    detail = str(body["detail"])
            except ValueError:
                pass
            logger.warning("Top-up rejected status=%s detail=%s", response.status_code, detail)
            raise TopupRejectedError(response.status_code, detail)

        try:
            body = response.json() if response.content else {}
        except ValueError:
            body = {}
        logger.info("Top-up accepted status=%s", response.status_code)
        return body if isinstance(body, dict) else {"result": body}
