"""src.context_gateway.config.loader

Chargement de la configuration TOML.

Note d'architecture:
- Le package `config/` est consommé par les couches Proxy et Features.
- Il ne doit donc pas dépendre de `features/*` ni de `proxy/*`.
"""
import os
import re
import tomllib
from pathlib import Path
from typing import Any, Dict, Optional

from ..core.exceptions import ConfigurationError
from .settings import Settings

CONFIG_ENV_VAR = "CONTEXT_GATEWAY_CONFIG"

# Cache global de configuration
_config_cache: Optional[Dict[str, Any]] = None

_ENV_PATTERN = re.compile(r"\$\{([^}]+)\}")


def _expand_env_vars(obj: Any) -> Any:
    """
    Récursivement étend les variables d'environnement ${VAR} dans la config.

    Une variable absente est laissée telle quelle.
    """
    if isinstance(obj, str):
        return _ENV_PATTERN.sub(lambda m: os.environ.get(m.group(1), m.group(0)), obj)
    elif isinstance(obj, dict):
        return {k: _expand_env_vars(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_expand_env_vars(item) for item in obj]
    return obj


def _clear_config_cache():
    """Vide le cache de configuration."""
    global _config_cache
    _config_cache = None


def _default_config_path() -> str:
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return env_path
    # Structure: project/src/context_gateway/config/loader.py
    project_dir = Path(__file__).resolve().parents[3]
    return str(project_dir / "config.toml")


def load_config(config_path: str = None) -> Dict[str, Any]:
    """
    Charge la configuration depuis config.toml.

    Args:
        config_path: Chemin vers le fichier config (optionnel)

    Returns:
        Dictionnaire de configuration

    Raises:
        ConfigurationError: Si le fichier n'existe pas ou est invalide
    """
    global _config_cache

    if _config_cache is not None and config_path is None:
        return _config_cache

    path = Path(config_path or _default_config_path())
    if not path.exists():
        raise ConfigurationError(
            message=f"Fichier de configuration non trouvé: {path}",
            config_key="config_path"
        )

    try:
        with open(path, "rb") as f:
            raw_config = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(
            message=f"TOML invalide dans {path}: {e}",
            config_key="config_path"
        ) from e

    _config_cache = _expand_env_vars(raw_config)
    return _config_cache


def reload_config(config_path: str = None) -> Dict[str, Any]:
    """
    Recharge la configuration depuis le fichier.

    Returns:
        Nouvelle configuration chargée
    """
    _clear_config_cache()
    return load_config(config_path)


def get_config() -> Dict[str, Any]:
    """
    Retourne la configuration en cache.

    Returns:
        Configuration actuelle
    """
    if _config_cache is None:
        return load_config()
    return _config_cache


def get_settings(config: Dict[str, Any] = None) -> Settings:
    """Construit les `Settings` typés depuis la config (chargée si absente)."""
    return Settings.from_config(config if config is not None else get_config())
