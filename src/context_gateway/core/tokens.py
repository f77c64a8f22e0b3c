"""
Estimation des tokens avec Tiktoken, repli sur un ratio caractères/token.
"""
import logging
import math
from typing import List, Optional

import tiktoken

from .constants import DEFAULT_CHARS_PER_TOKEN, TIKTOKEN_ENCODING

logger = logging.getLogger(__name__)

# Chargé à la demande: get_encoding peut télécharger le fichier BPE
_encoding = None
_encoding_failed = False


def _get_encoding() -> Optional["tiktoken.Encoding"]:
    global _encoding, _encoding_failed
    if _encoding is not None or _encoding_failed:
        return _encoding
    try:
        _encoding = tiktoken.get_encoding(TIKTOKEN_ENCODING)
    except Exception as e:
        _encoding_failed = True
        logger.warning(f"Encodage tiktoken indisponible, repli caractères/token: {e}")
    return _encoding


def estimate_tokens(text: str, chars_per_token: int = DEFAULT_CHARS_PER_TOKEN) -> int:
    """
    Estime le nombre de tokens d'un texte.

    Args:
        text: Texte à analyser
        chars_per_token: Ratio utilisé si tiktoken est indisponible

    Returns:
        Nombre de tokens estimé
    """
    if not text:
        return 0
    encoding = _get_encoding()
    if encoding is not None:
        try:
            return len(encoding.encode(text, disallowed_special=()))
        except Exception as e:
            logger.debug(f"Encodage tiktoken échoué, repli: {e}")
    return math.ceil(len(text) / max(1, chars_per_token))


def estimate_tokens_batch(texts: List[str], chars_per_token: int = DEFAULT_CHARS_PER_TOKEN) -> List[int]:
    """Estime les tokens de plusieurs textes."""
    return [estimate_tokens(text, chars_per_token) for text in texts]


def format_token_count(tokens: int) -> str:
    """Formate un nombre de tokens pour affichage (1500 -> "1.5K", 50 -> "50")."""
    if tokens >= 1000:
        return f"{tokens / 1000:.1f}K".replace(".0K", "K")
    return str(tokens)
