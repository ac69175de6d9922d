# utils.py
"""
Utilitaires et helpers pour le cache de pools.

Contient:
- Configuration du logging
- Normalisation des adresses EVM (checksum EIP-55 + ordre numérique)
- Fonctions helpers pour dates/timestamps
- Formatters pour affichage
"""
import logging
import os
import sys
import time
from datetime import datetime, timezone
from pathlib import Path

from web3 import Web3

# ============================================================================
# Configuration du Logging
# ============================================================================

def setup_logger(name: str = "poolcache", level: str = None) -> logging.Logger:
    """
    Configure le logger avec handlers console + fichier.

    Args:
        name: Nom du logger
        level: Niveau de log (DEBUG, INFO, WARNING, ERROR)

    Returns:
        Logger configuré
    """
    # Niveau depuis env ou défaut INFO
    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO").upper()

    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level, logging.INFO))

    # Éviter les handlers dupliqués
    if logger.handlers:
        return logger

    formatter = logging.Formatter(
        "%(asctime)s [%(levelname)-8s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # Handler fichier (désactivé par défaut: le cache tourne souvent dans un autre service)
    save_logs = os.getenv("SAVE_LOGS", "false").lower() == "true"
    if save_logs:
        log_file = os.getenv("LOG_FILE", "logs/pool_cache.log")

        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

        logger.info(f"Logging to file: {log_file}")

    return logger

# Logger global
logger = setup_logger()

# ============================================================================
# Adresses EVM
# ============================================================================

def canonical_address(address: str) -> str:
    """
    Retourne l'adresse au format checksum EIP-55.

    Lève ValueError / TypeError si l'adresse est malformée.
    """
    return Web3.to_checksum_address(address)


def address_sort_key(address: str) -> int:
    """Valeur numérique d'une adresse hex (ordre total utilisé pour les paires)."""
    return int(address, 16)


def order_pair(token_a: str, token_b: str) -> tuple:
    """
    Canonicalise les deux adresses et place la plus petite en premier.

    Returns:
        (lesser, greater) au format checksum
    """
    a = canonical_address(token_a)
    b = canonical_address(token_b)
    if address_sort_key(a) < address_sort_key(b):
        return a, b
    return b, a


def is_valid_evm_address(address: str) -> bool:
    """
    Vérifie si une adresse EVM est valide (0x + 40 caractères hex).

    Args:
        address: Adresse à vérifier

    Returns:
        True si valide, False sinon
    """
    if not address or not isinstance(address, str):
        return False
    return Web3.is_address(address)

# ============================================================================
# Fonctions Utilitaires
# ============================================================================

def now_ts() -> float:
    """Retourne le timestamp Unix actuel (secondes, avec décimales)"""
    return time.time()

def format_timestamp(ts: float = None) -> str:
    """
    Formate un timestamp en chaîne lisible (UTC).

    Args:
        ts: Timestamp Unix (ou None pour maintenant)

    Returns:
        Chaîne formatée "YYYY-MM-DD HH:MM:SS"
    """
    if ts is None:
        ts = now_ts()
    dt = datetime.fromtimestamp(ts, tz=timezone.utc)
    return dt.strftime("%Y-%m-%d %H:%M:%S")

def truncate_address(address: str, start: int = 8, end: int = 4) -> str:
    """
    Tronque une adresse pour l'affichage.

    Args:
        address: Adresse complète
        start: Nombre de caractères au début
        end: Nombre de caractères à la fin

    Returns:
        Adresse tronquée "0x4200000...0006"
    """
    if len(address) <= start + end:
        return address
    return f"{address[:start]}...{address[-end:]}"
