"""
thegraph_fetcher.py

Helpers pour interroger le subgraph TheGraph de Maverick V1 et récupérer le
catalogue des pools les plus liquides (triées par balanceUSD décroissant).

La fonction principale `fetch_top_pools` retourne la liste brute des pools
telle que renvoyée par le subgraph:

    {"id": ..., "tokenA": {"id", "decimals"}, "tokenB": {"id", "decimals"}, "balanceUSD": ...}

Toute erreur de transport ou de schéma est levée sous forme de SubgraphError;
c'est à l'appelant (le cache) de décider comment dégrader.
"""
import asyncio
from typing import Optional, Dict, Any, List

import aiohttp

from config import (
    HTTP_PROXY,
    HTTPS_PROXY,
    MAVERICK_V1_SUBGRAPH_URL,
    SUBGRAPH_MAX_RETRIES,
    SUBGRAPH_REQUEST_TIMEOUT_SECONDS,
)
from utils import logger

# Subgraph endpoints par chaîne (None = pas de subgraph, requêtes désactivées)
MAVERICK_V1_SUBGRAPHS: Dict[str, Optional[str]] = {
    "ethereum": MAVERICK_V1_SUBGRAPH_URL,
    "base": None,
    "bsc": None,
    "zksync": None,
}

TOP_POOLS_QUERY = """
query ($topPoolsFetched: Int) {
  pools(first: $topPoolsFetched, orderBy: balanceUSD, orderDirection: desc) {
    id
    tokenA { id decimals }
    tokenB { id decimals }
    balanceUSD
  }
}
"""


class SubgraphError(Exception):
    """Échec d'une requête subgraph (réseau, statut HTTP, erreurs GraphQL, schéma)."""


def get_subgraph_url(chain: str) -> Optional[str]:
    """Retourne l'URL du subgraph Maverick V1 pour une chaîne (None si indisponible)."""
    url = MAVERICK_V1_SUBGRAPHS.get(chain.lower())
    if not url:
        logger.warning(f"No Maverick V1 subgraph URL for chain={chain}")
    return url


async def query_subgraph(
    session: aiohttp.ClientSession,
    subgraph_url: str,
    query: str,
    variables: dict,
    timeout: int = SUBGRAPH_REQUEST_TIMEOUT_SECONDS,
    max_retries: int = SUBGRAPH_MAX_RETRIES,
    backoff: float = 1.0,
) -> dict:
    """
    Query TheGraph subgraph avec retry exponentiel et validation stricte.

    Les erreurs réseau / timeouts / statuts != 200 sont retentés; une réponse
    GraphQL invalide (errors, pas de data) est définitive.

    Raises:
        SubgraphError si toutes les tentatives ont échoué
    """
    headers = {
        "Content-Type": "application/json",
        "Accept": "application/json",
    }
    proxy = HTTPS_PROXY or HTTP_PROXY
    last_error = "no attempt made"

    for attempt in range(max_retries):
        try:
            async with session.post(
                subgraph_url,
                json={"query": query, "variables": variables},
                headers=headers,
                proxy=proxy,
                timeout=aiohttp.ClientTimeout(total=timeout),
            ) as resp:
                if resp.status != 200:
                    last_error = f"HTTP {resp.status}"
                    logger.debug(f"Subgraph returned {resp.status}: {subgraph_url}")
                else:
                    data = await resp.json()

                    if not data:
                        raise SubgraphError(f"Empty response from {subgraph_url}")
                    if not isinstance(data, dict):
                        raise SubgraphError(f"Malformed response from {subgraph_url}")
                    if "errors" in data:
                        raise SubgraphError(f"GraphQL errors: {data['errors']}")
                    if not isinstance(data.get("data"), dict):
                        raise SubgraphError(f"No 'data' object in response from {subgraph_url}")
                    return data["data"]

        except asyncio.TimeoutError:
            last_error = "timeout"
            logger.debug(f"Timeout querying {subgraph_url}")
        except aiohttp.ClientError as e:
            last_error = str(e)
            logger.debug(f"Network error querying {subgraph_url}: {e}")

        if attempt < max_retries - 1:
            await asyncio.sleep(backoff * (2 ** attempt))

    raise SubgraphError(f"Subgraph query failed after {max_retries} attempts ({last_error}): {subgraph_url}")


async def fetch_top_pools(
    session: aiohttp.ClientSession,
    subgraph_url: Optional[str],
    top_pools_fetched: int,
    **kwargs,
) -> List[Dict[str, Any]]:
    """
    Récupère les `top_pools_fetched` pools Maverick V1 les plus liquides.

    Args:
        session: Session aiohttp
        subgraph_url: Endpoint du subgraph (None = désactivé, retourne [])
        top_pools_fetched: Nombre max de pools demandées
        **kwargs: Options transmises à query_subgraph (timeout, max_retries, backoff)

    Returns:
        Liste des pools, ordre du subgraph (balanceUSD desc)
    """
    if not subgraph_url:
        return []

    data = await query_subgraph(
        session,
        subgraph_url,
        TOP_POOLS_QUERY,
        {"topPoolsFetched": top_pools_fetched},
        **kwargs,
    )
    pools = data.get("pools")
    if not isinstance(pools, list):
        raise SubgraphError(f"Malformed 'pools' field in response from {subgraph_url}")

    logger.debug(f"[maverick_v1] fetched {len(pools)} pools from subgraph")
    return pools
