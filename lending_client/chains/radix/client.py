"""Radix Gateway API client with endpoint fallback."""
import logging
import ssl
from typing import Any

import aiohttp
import certifi

from ...config import GatewayConfig
from ...errors import GatewayError
from ...models import AccountState, NonFungibleData
from . import parser

logger = logging.getLogger(__name__)


class GatewayClient:
    """Radix Gateway client with automatic endpoint fallback."""

    def __init__(self, config: GatewayConfig) -> None:
        self.endpoints = [e.rstrip("/") for e in config.endpoints]
        self.timeout = config.timeout
        self.current_endpoint_index = 0

    async def post(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        """POST to the gateway, falling back to the next endpoint on failure."""
        if not self.endpoints:
            raise GatewayError("No gateway endpoints configured")

        ssl_context = ssl.create_default_context(cafile=certifi.where())

        last_error: Exception | None = None
        for attempt in range(len(self.endpoints)):
            index = (self.current_endpoint_index + attempt) % len(self.endpoints)
            url = f"{self.endpoints[index]}{path}"

            try:
                connector = aiohttp.TCPConnector(ssl=ssl_context)
                async with aiohttp.ClientSession(connector=connector) as session:
                    async with session.post(
                        url,
                        json=body,
                        timeout=aiohttp.ClientTimeout(total=self.timeout),
                    ) as response:
                        result = await response.json()
                        if response.status != 200:
                            message = result.get("message", "") if isinstance(result, dict) else ""
                            raise RuntimeError(f"HTTP {response.status}: {message}")

                        if index != self.current_endpoint_index:
                            logger.info("Switched to gateway endpoint: %s", self.endpoints[index])
                            self.current_endpoint_index = index

                        return result
            except Exception as e:
                last_error = e
                logger.warning("Gateway endpoint %s failed: %s", url, e)
                if attempt < len(self.endpoints) - 1:
                    logger.info("Trying next endpoint...")
                continue

        raise GatewayError(f"All gateway endpoints failed. Last error: {last_error}")

    async def get_account_state(self, address: str) -> AccountState:
        """Fungible balances and non-fungible ids held by an account."""
        result = await self.post(
            "/state/entity/details", parser.build_entity_details_request(address)
        )
        state = parser.parse_account_state(address, result)
        logger.debug(
            "Account %s: %d fungible, %d non-fungible resources",
            address, len(state.fungible_balances), len(state.non_fungibles),
        )
        return state

    async def get_non_fungible_data(
        self, resource_address: str, local_id: str
    ) -> NonFungibleData:
        """Programmatic data fields of a single non-fungible."""
        result = await self.post(
            "/state/non-fungible/data",
            parser.build_non_fungible_data_request(resource_address, local_id),
        )
        return parser.parse_non_fungible_data(resource_address, local_id, result)
