"""Integration tests for the market API client with mocked HTTP."""
from __future__ import annotations

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from lending_client.config import MarketApiConfig
from lending_client.errors import ClusterStateUnavailable, PriceUnavailable
from lending_client.oracles.market_api import MarketApiClient


@pytest.fixture()
def client() -> MarketApiClient:
    return MarketApiClient(MarketApiConfig(base_url="https://market.example.com/api/", timeout=5))


def _mock_session(data=None, status: int = 200, error: Exception | None = None):
    mock_response = AsyncMock()
    mock_response.status = status
    mock_response.json = AsyncMock(return_value=data)
    mock_response.__aenter__ = AsyncMock(return_value=mock_response)
    mock_response.__aexit__ = AsyncMock(return_value=None)

    mock_session = AsyncMock()
    if error:
        mock_session.get = MagicMock(side_effect=error)
    else:
        mock_session.get = MagicMock(return_value=mock_response)
    mock_session.__aenter__ = AsyncMock(return_value=mock_session)
    mock_session.__aexit__ = AsyncMock(return_value=None)
    return mock_session


class TestFetchPrices:
    @pytest.mark.asyncio
    async def test_success(self, client: MarketApiClient) -> None:
        mock_session = _mock_session({"prices": [{"asset": "res_xrd", "price": "0.02"}]})

        with patch("lending_client.oracles.market_api.aiohttp.ClientSession", return_value=mock_session):
            with patch("lending_client.oracles.market_api.aiohttp.TCPConnector"):
                prices = await client.fetch_prices()

        assert prices == {"res_xrd": Decimal("0.02")}
        assert mock_session.get.call_args[0][0] == "https://market.example.com/api/assets/prices"

    @pytest.mark.asyncio
    async def test_http_error_raises(self, client: MarketApiClient) -> None:
        mock_session = _mock_session({}, status=500)

        with patch("lending_client.oracles.market_api.aiohttp.ClientSession", return_value=mock_session):
            with patch("lending_client.oracles.market_api.aiohttp.TCPConnector"):
                with pytest.raises(PriceUnavailable, match="HTTP 500"):
                    await client.fetch_prices()

    @pytest.mark.asyncio
    async def test_network_error_raises(self, client: MarketApiClient) -> None:
        mock_session = _mock_session(error=ConnectionError("refused"))

        with patch("lending_client.oracles.market_api.aiohttp.ClientSession", return_value=mock_session):
            with patch("lending_client.oracles.market_api.aiohttp.TCPConnector"):
                with pytest.raises(PriceUnavailable, match="refused"):
                    await client.fetch_prices()


class TestFetchClusterStates:
    @pytest.mark.asyncio
    async def test_success(self, client: MarketApiClient) -> None:
        mock_session = _mock_session({"res_xrd": {"supply_ratio": "1", "debt_ratio": "1.05"}})

        with patch("lending_client.oracles.market_api.aiohttp.ClientSession", return_value=mock_session):
            with patch("lending_client.oracles.market_api.aiohttp.TCPConnector"):
                clusters = await client.fetch_cluster_states()

        assert clusters["res_xrd"].debt_ratio == Decimal("1.05")
        assert mock_session.get.call_args[0][0].endswith("/assets/clusters")

    @pytest.mark.asyncio
    async def test_network_error_raises(self, client: MarketApiClient) -> None:
        mock_session = _mock_session(error=ConnectionError("refused"))

        with patch("lending_client.oracles.market_api.aiohttp.ClientSession", return_value=mock_session):
            with patch("lending_client.oracles.market_api.aiohttp.TCPConnector"):
                with pytest.raises(ClusterStateUnavailable):
                    await client.fetch_cluster_states()
