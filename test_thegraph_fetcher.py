# test_thegraph_fetcher.py
"""
Tests du transport subgraph (query_subgraph / fetch_top_pools).

La session aiohttp est remplacée par une fausse session qui rejoue une
liste de réponses (ou d'exceptions) et enregistre les requêtes envoyées.
"""
import asyncio
import logging

import aiohttp
import pytest

import thegraph_fetcher
from thegraph_fetcher import (
    SubgraphError,
    TOP_POOLS_QUERY,
    fetch_top_pools,
    get_subgraph_url,
    query_subgraph,
)

URL = "https://example.invalid/subgraphs/name/maverickprotocol/maverick-mainnet"


class FakeResponse:
    def __init__(self, status=200, payload=None):
        self.status = status
        self._payload = payload

    async def json(self):
        return self._payload

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    """Rejoue `responses` dans l'ordre; une exception est levée au lieu d'être renvoyée."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.requests = []
        self.closed = False

    async def close(self):
        self.closed = True

    def post(self, url, **kwargs):
        self.requests.append((url, kwargs))
        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response


def pools_payload(pools):
    return {"data": {"pools": pools}}


@pytest.mark.asyncio
async def test_query_subgraph_returns_data_field():
    session = FakeSession([FakeResponse(payload=pools_payload([{"id": "0x01"}]))])

    data = await query_subgraph(session, URL, TOP_POOLS_QUERY, {"topPoolsFetched": 5})

    assert data == {"pools": [{"id": "0x01"}]}
    url, kwargs = session.requests[0]
    assert url == URL
    assert kwargs["json"] == {"query": TOP_POOLS_QUERY, "variables": {"topPoolsFetched": 5}}
    assert isinstance(kwargs["timeout"], aiohttp.ClientTimeout)


@pytest.mark.asyncio
async def test_query_subgraph_retries_on_bad_status():
    session = FakeSession([
        FakeResponse(status=502),
        FakeResponse(status=429),
        FakeResponse(payload=pools_payload([])),
    ])

    data = await query_subgraph(session, URL, TOP_POOLS_QUERY, {}, backoff=0)

    assert data == {"pools": []}
    assert len(session.requests) == 3


@pytest.mark.asyncio
async def test_query_subgraph_retries_on_network_errors():
    session = FakeSession([
        asyncio.TimeoutError(),
        aiohttp.ClientConnectionError("reset"),
        FakeResponse(payload=pools_payload([])),
    ])

    assert await query_subgraph(session, URL, TOP_POOLS_QUERY, {}, backoff=0) == {"pools": []}


@pytest.mark.asyncio
async def test_query_subgraph_raises_after_max_retries():
    session = FakeSession([asyncio.TimeoutError()] * 3)

    with pytest.raises(SubgraphError, match="after 3 attempts"):
        await query_subgraph(session, URL, TOP_POOLS_QUERY, {}, max_retries=3, backoff=0)
    assert len(session.requests) == 3


@pytest.mark.asyncio
async def test_query_subgraph_failed_attempts_log_below_warning(caplog):
    session = FakeSession([
        FakeResponse(status=503),
        asyncio.TimeoutError(),
        aiohttp.ClientConnectionError("reset"),
    ])

    with caplog.at_level(logging.DEBUG, logger="poolcache"):
        with pytest.raises(SubgraphError):
            await query_subgraph(session, URL, TOP_POOLS_QUERY, {}, max_retries=3, backoff=0)

    assert [r for r in caplog.records if r.levelno >= logging.WARNING] == []
    assert len([r for r in caplog.records if r.levelno == logging.DEBUG]) >= 3


@pytest.mark.asyncio
async def test_query_subgraph_graphql_errors_are_not_retried():
    session = FakeSession([
        FakeResponse(payload={"errors": [{"message": "indexer unavailable"}]}),
        FakeResponse(payload=pools_payload([])),
    ])

    with pytest.raises(SubgraphError, match="GraphQL errors"):
        await query_subgraph(session, URL, TOP_POOLS_QUERY, {}, backoff=0)
    assert len(session.requests) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [None, {}, {"meta": 1}, {"data": None}, {"data": []}, [{"pools": []}]])
async def test_query_subgraph_rejects_empty_or_dataless_response(payload):
    session = FakeSession([FakeResponse(payload=payload)])

    with pytest.raises(SubgraphError):
        await query_subgraph(session, URL, TOP_POOLS_QUERY, {}, backoff=0)


@pytest.mark.asyncio
async def test_fetch_top_pools_sends_requested_count():
    pools = [{"id": "0x01"}, {"id": "0x02"}]
    session = FakeSession([FakeResponse(payload=pools_payload(pools))])

    assert await fetch_top_pools(session, URL, 250) == pools
    assert session.requests[0][1]["json"]["variables"] == {"topPoolsFetched": 250}


@pytest.mark.asyncio
async def test_fetch_top_pools_disabled_url_makes_no_request():
    session = FakeSession([])

    assert await fetch_top_pools(session, None, 250) == []
    assert session.requests == []


@pytest.mark.asyncio
async def test_fetch_top_pools_rejects_malformed_pools_field():
    session = FakeSession([FakeResponse(payload={"data": {"pools": None}})])

    with pytest.raises(SubgraphError, match="Malformed"):
        await fetch_top_pools(session, URL, 250)


def test_get_subgraph_url(monkeypatch):
    monkeypatch.setitem(thegraph_fetcher.MAVERICK_V1_SUBGRAPHS, "ethereum", URL)

    assert get_subgraph_url("ethereum") == URL
    assert get_subgraph_url("Ethereum") == URL
    assert get_subgraph_url("base") is None
    assert get_subgraph_url("unknown-chain") is None
