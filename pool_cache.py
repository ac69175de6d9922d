# pool_cache.py
"""
Cache des pools Maverick V1 par paire de tokens.

Le cache associe une paire de tokens (ordre indifférent) à la liste des
adresses de pools qui la tradent, telle que renvoyée par le subgraph
(déjà triée par balanceUSD décroissant).

Fonctionnement:
- au démarrage, un chargement complet du catalogue (top N pools) est lancé
  en tâche de fond, puis répété toutes les `refresh_interval` secondes
- `get_fresh_pools` renvoie les pools d'une paire en moins de `timeout`
  secondes: cache si frais, sinon fetch ciblé; si le fetch est trop lent on
  renvoie [] et le fetch continue en arrière-plan (il remplira le cache)
- `get_pool_addresses` / `is_fresh` sont synchrones et ne font jamais de réseau

Aucune erreur n'est propagée à l'appelant: un échec réseau ou une adresse
invalide donne une liste vide + un warning.
"""
import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

import aiohttp

from config import (
    MAVERICK_TOP_POOLS_FETCHED,
    MAVERICK_V1_SUBGRAPH_URL,
    POOL_CACHE_TTL_SECONDS,
    POOL_LOOKUP_TIMEOUT_SECONDS,
    POOL_REFRESH_INTERVAL_SECONDS,
)
from thegraph_fetcher import SubgraphError, fetch_top_pools, get_subgraph_url
from utils import canonical_address, logger, order_pair, truncate_address

FetchTopPools = Callable[[int], Awaitable[List[Dict[str, Any]]]]
WarningLogger = Callable[[BaseException, str], None]

# Erreurs converties en liste vide + warning (transport, schéma, adresse invalide)
LOOKUP_ERRORS = (
    SubgraphError,
    aiohttp.ClientError,
    asyncio.TimeoutError,
    KeyError,
    TypeError,
    ValueError,
)

FETCH_FAILED_MESSAGE = "Failed to fetch top pools for Maverick V1"


def default_warning_logger(err: BaseException, message: str) -> None:
    logger.warning(f"{message}: {err}")


class PairPoolCache:
    """Cache TTL paire de tokens -> adresses de pools, rafraîchi en tâche de fond."""

    def __init__(
        self,
        subgraph_url: Optional[str] = MAVERICK_V1_SUBGRAPH_URL,
        top_pools_fetched: int = MAVERICK_TOP_POOLS_FETCHED,
        cache_ttl: float = POOL_CACHE_TTL_SECONDS,
        refresh_interval: float = POOL_REFRESH_INTERVAL_SECONDS,
        lookup_timeout: float = POOL_LOOKUP_TIMEOUT_SECONDS,
        warning_logger: WarningLogger = default_warning_logger,
        fetch_top_pools: Optional[FetchTopPools] = None,
        session: Optional[aiohttp.ClientSession] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._subgraph_url = subgraph_url
        self._top_pools_fetched = top_pools_fetched
        self._cache_ttl = cache_ttl
        self._refresh_interval = refresh_interval
        self._lookup_timeout = lookup_timeout
        self._warning_logger = warning_logger
        self._fetch_top_pools_fn = fetch_top_pools
        self._session = session
        self._owns_session = session is None
        self._clock = clock

        # key "<lesser>-<greater>" -> {"pools": [...], "expires_at": float}
        self._cache: Dict[str, Dict[str, Any]] = {}
        self._refresh_task: Optional[asyncio.Task] = None
        # Recherches abandonnées après timeout (encore en vol)
        self._pending: Set[asyncio.Task] = set()

    @classmethod
    def create(cls, chain: str = "ethereum", **kwargs) -> "PairPoolCache":
        """
        Construit le cache pour une chaîne et démarre le rafraîchissement.

        Doit être appelé depuis une boucle asyncio en cours d'exécution.
        """
        cache = cls(get_subgraph_url(chain), **kwargs)
        cache.start()
        return cache

    # ------------------------------------------------------------------ #
    # Cycle de vie
    # ------------------------------------------------------------------ #
    def start(self) -> asyncio.Task:
        """Lance (une seule fois) la boucle de rafraîchissement du catalogue."""
        if self._refresh_task is None or self._refresh_task.done():
            self._refresh_task = asyncio.get_running_loop().create_task(self._refresh_loop())
        return self._refresh_task

    async def close(self) -> None:
        """Arrête le rafraîchissement, annule les recherches en vol, ferme la session."""
        tasks = [t for t in (self._refresh_task, *self._pending) if t is not None and not t.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._refresh_task = None
        self._pending.clear()

        if self._owns_session and self._session is not None:
            if not self._session.closed:
                await self._session.close()
            self._session = None

    async def __aenter__(self) -> "PairPoolCache":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _refresh_loop(self) -> None:
        while True:
            try:
                await self.refresh_catalog()
            except Exception as e:
                logger.exception(f"[maverick_v1] refresh loop error: {e}")
            await asyncio.sleep(self._refresh_interval)

    # ------------------------------------------------------------------ #
    # Clés et entrées
    # ------------------------------------------------------------------ #
    @staticmethod
    def normalize_key(token_a: str, token_b: str) -> str:
        """Clé "<plus petite>-<plus grande>" (adresses checksum), identique pour (a, b) et (b, a)."""
        lesser, greater = order_pair(token_a, token_b)
        return f"{lesser}-{greater}"

    def _is_expired(self, entry: Optional[Dict[str, Any]]) -> bool:
        if entry is None:
            return True
        return self._clock() >= entry["expires_at"]

    def _cache_pools_for_pair(self, key: str, pools: List[str]) -> None:
        self._cache[key] = {"pools": pools, "expires_at": self._clock() + self._cache_ttl}

    def _get_entry(self, token_a: str, token_b: str) -> Optional[Dict[str, Any]]:
        try:
            key = self.normalize_key(token_a, token_b)
        except (ValueError, TypeError):
            return None
        return self._cache.get(key)

    # ------------------------------------------------------------------ #
    # Accès synchrones (jamais de réseau)
    # ------------------------------------------------------------------ #
    def is_fresh(self, token_a: str, token_b: str) -> bool:
        return not self._is_expired(self._get_entry(token_a, token_b))

    def get_pool_addresses(self, token_a: str, token_b: str) -> List[str]:
        """Pools connues pour la paire, même expirées ([] si jamais vues)."""
        entry = self._get_entry(token_a, token_b)
        return [] if entry is None else list(entry["pools"])

    # ------------------------------------------------------------------ #
    # Recherche ciblée
    # ------------------------------------------------------------------ #
    async def get_fresh_pools(
        self,
        token_a: str,
        token_b: str,
        timeout: Optional[float] = None,
    ) -> List[str]:
        """
        Pools fraîches pour la paire, en au plus `timeout` secondes.

        Si le délai est dépassé on renvoie [] sans annuler la recherche:
        elle continue et écrit son résultat dans le cache pour les appels suivants.
        """
        if timeout is None:
            timeout = self._lookup_timeout

        task = asyncio.ensure_future(self.get_and_save_fresh_pools(token_a, token_b))
        self._pending.add(task)
        task.add_done_callback(self._on_lookup_done)

        done, _ = await asyncio.wait({task}, timeout=timeout)
        if task in done:
            return task.result()

        logger.debug(
            f"[maverick_v1] lookup {truncate_address(str(token_a))}/{truncate_address(str(token_b))} "
            f"timed out after {timeout}s, returning no pools"
        )
        return []

    def _on_lookup_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        err = task.exception()
        if err is not None:
            logger.error(f"[maverick_v1] pool lookup failed: {err!r}")

    async def get_and_save_fresh_pools(self, token_a: str, token_b: str) -> List[str]:
        """Pools de la paire depuis le cache si frais, sinon via un fetch ciblé (sans timeout)."""
        try:
            key = self.normalize_key(token_a, token_b)
        except LOOKUP_ERRORS as err:
            self._warning_logger(err, f"Invalid token pair {token_a}/{token_b}")
            return []

        entry = self._cache.get(key)
        if not self._is_expired(entry):
            return list(entry["pools"])

        try:
            pools = await self._fetch_pools_for_pair(token_a, token_b)
        except LOOKUP_ERRORS as err:
            # pas de cache négatif: le prochain appel retentera le réseau
            self._warning_logger(err, FETCH_FAILED_MESSAGE)
            return []

        self._cache_pools_for_pair(key, pools)
        return list(pools)

    async def _fetch_pools_for_pair(self, token_a: str, token_b: str) -> List[str]:
        pair = order_pair(token_a, token_b)
        matches = []
        for pool in await self._fetch_top_pools():
            try:
                if order_pair(pool["tokenA"]["id"], pool["tokenB"]["id"]) == pair:
                    matches.append(canonical_address(pool["id"]))
            except LOOKUP_ERRORS as err:
                logger.debug(f"[maverick_v1] skipping malformed pool {pool!r}: {err}")
        return matches

    # ------------------------------------------------------------------ #
    # Catalogue complet
    # ------------------------------------------------------------------ #
    async def refresh_catalog(self) -> int:
        """
        Recharge le top N des pools et met à jour chaque paire présente.

        Les paires absentes du lot ne sont pas touchées (elles expireront
        naturellement). En cas d'échec du fetch le cache reste inchangé.

        Returns:
            Nombre de paires mises à jour
        """
        try:
            pools = await self._fetch_top_pools()
        except LOOKUP_ERRORS as err:
            self._warning_logger(err, FETCH_FAILED_MESSAGE)
            return 0

        pools_by_pair: Dict[str, List[str]] = {}
        for pool in pools:
            try:
                key = self.normalize_key(pool["tokenA"]["id"], pool["tokenB"]["id"])
                pool_address = canonical_address(pool["id"])
            except LOOKUP_ERRORS as err:
                logger.debug(f"[maverick_v1] skipping malformed pool {pool!r}: {err}")
                continue
            pair_pools = pools_by_pair.setdefault(key, [])
            pair_pools.append(pool_address)
            self._cache_pools_for_pair(key, pair_pools)

        logger.info(f"[maverick_v1] catalog refreshed: {len(pools)} pools, {len(pools_by_pair)} pairs")
        return len(pools_by_pair)

    async def _fetch_top_pools(self) -> List[Dict[str, Any]]:
        if self._fetch_top_pools_fn is not None:
            return list(await self._fetch_top_pools_fn(self._top_pools_fetched))
        if not self._subgraph_url:
            return []
        return await fetch_top_pools(self._get_session(), self._subgraph_url, self._top_pools_fetched)

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session
