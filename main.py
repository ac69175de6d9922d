"""
main.py

Lance le cache de pools Maverick V1 et surveille une liste de paires:
à chaque cycle, chaque paire est résolue via `get_fresh_pools` (borné par
le timeout de recherche) et le résultat est loggé.

Usage:
    python main.py                       # paires de WATCH_PAIRS (ou défaut WETH/USDC, WETH/USDT)
    python main.py TOKEN_A TOKEN_B ...   # paires passées en argument (par deux)
"""

import asyncio
import sys
from typing import List, Tuple

from config import CHECK_INTERVAL_SECONDS, WATCH_PAIRS
from pool_cache import PairPoolCache
from utils import format_timestamp, is_valid_evm_address, logger, truncate_address

# ============================================================================ #
# TOKENS (Ethereum mainnet)
# ============================================================================ #
WETH = "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"
USDC = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"
USDT = "0xdAC17F958D2ee523a2206206994597C13D831ec7"

DEFAULT_PAIRS = [(WETH, USDC), (WETH, USDT)]


def parse_pairs(argv: List[str], watch_pairs: str = WATCH_PAIRS) -> List[Tuple[str, str]]:
    """
    Construit la liste des paires à surveiller.

    Priorité: arguments CLI (par deux), puis WATCH_PAIRS ("a:b,c:d"), puis défaut.
    Les adresses EVM invalides sont refusées (CLI) ou ignorées (WATCH_PAIRS).
    """
    if argv:
        if len(argv) % 2:
            raise SystemExit("usage: python main.py [TOKEN_A TOKEN_B ...]")
        invalid = [token for token in argv if not is_valid_evm_address(token)]
        if invalid:
            raise SystemExit(f"invalid token address: {', '.join(invalid)}")
        return list(zip(argv[::2], argv[1::2]))

    pairs = []
    for chunk in watch_pairs.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        token_a, sep, token_b = chunk.partition(":")
        token_a, token_b = token_a.strip(), token_b.strip()
        if not sep or not is_valid_evm_address(token_a) or not is_valid_evm_address(token_b):
            logger.warning(f"[MAIN] Ignoring malformed WATCH_PAIRS entry: {chunk}")
            continue
        pairs.append((token_a, token_b))
    return pairs or list(DEFAULT_PAIRS)


async def scan_pairs(cache: PairPoolCache, pairs: List[Tuple[str, str]]) -> None:
    for token_a, token_b in pairs:
        pools = await cache.get_fresh_pools(token_a, token_b)
        label = f"{truncate_address(token_a)}/{truncate_address(token_b)}"
        if not pools:
            logger.info(f"[MAIN] {label}: no pools")
            continue
        logger.info(
            f"[MAIN] {label}: {len(pools)} pools "
            f"(fresh={cache.is_fresh(token_a, token_b)}) -> {', '.join(pools[:5])}"
        )


async def main():
    pairs = parse_pairs(sys.argv[1:])
    logger.info(f"[MAIN] Watching {len(pairs)} pairs, scan every {CHECK_INTERVAL_SECONDS}s")

    async with PairPoolCache.create("ethereum") as cache:
        while True:
            try:
                await scan_pairs(cache, pairs)
                logger.info(f"[MAIN] Cycle completed at {format_timestamp()} UTC")
            except Exception as e:
                logger.error(f"Main loop error: {e}")
            await asyncio.sleep(CHECK_INTERVAL_SECONDS)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("[MAIN] Stopped")
