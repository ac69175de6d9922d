# config.py
from dotenv import load_dotenv
import os

load_dotenv()


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except (ValueError, TypeError):
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except (ValueError, TypeError):
        return default


# ============================================================
# SUBGRAPH MAVERICK V1
# ============================================================
# Endpoint public (Ethereum mainnet). Mettre une chaîne vide dans .env
# pour désactiver complètement les requêtes subgraph.
MAVERICK_V1_SUBGRAPH_URL = os.getenv(
    "MAVERICK_V1_SUBGRAPH_URL",
    "https://api.thegraph.com/subgraphs/name/maverickprotocol/maverick-mainnet",
) or None

# Nombre de pools (triées par balanceUSD desc) récupérées par requête catalogue
MAVERICK_TOP_POOLS_FETCHED = _env_int("MAVERICK_TOP_POOLS_FETCHED", 250)

# ============================================================
# CACHE DES POOLS PAR PAIRE
# ============================================================
# Durée de vie d'une entrée (30 minutes)
POOL_CACHE_TTL_SECONDS = _env_float("POOL_CACHE_TTL_SECONDS", 30 * 60)

# Rechargement complet du catalogue (toutes les 12 heures)
POOL_REFRESH_INTERVAL_SECONDS = _env_float("POOL_REFRESH_INTERVAL_SECONDS", 12 * 60 * 60)

# Délai max d'une recherche ciblée avant de renvoyer une liste vide
POOL_LOOKUP_TIMEOUT_SECONDS = _env_float("POOL_LOOKUP_TIMEOUT_SECONDS", 3.0)

# ============================================================
# TRANSPORT HTTP (TheGraph)
# ============================================================
SUBGRAPH_REQUEST_TIMEOUT_SECONDS = _env_int("SUBGRAPH_REQUEST_TIMEOUT_SECONDS", 15)
SUBGRAPH_MAX_RETRIES = _env_int("SUBGRAPH_MAX_RETRIES", 3)

# Proxies (optionnel, pour réseaux bloqués)
HTTP_PROXY = os.getenv("HTTP_PROXY")
HTTPS_PROXY = os.getenv("HTTPS_PROXY")

# ============================================================
# SCAN (main.py)
# ============================================================
# Intervalle entre deux passes de recherche sur les paires surveillées
CHECK_INTERVAL_SECONDS = _env_int("CHECK_INTERVAL_SECONDS", 30)

# Paires surveillées: "tokenA:tokenB,tokenA:tokenB"
WATCH_PAIRS = os.getenv("WATCH_PAIRS", "")
