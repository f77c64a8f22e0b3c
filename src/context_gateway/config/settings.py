"""
Dataclasses pour la configuration.

Chaque section tolère une valeur absente ou mal typée: on retombe sur la
valeur par défaut, les entiers sont bornés.
"""
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from ..core.constants import (
    DEFAULT_ANALYSIS_TIMEOUT_S,
    DEFAULT_CHARS_PER_TOKEN,
    DEFAULT_NUDGE_FREQUENCY,
    DEFAULT_PARENT_HEADER,
    DEFAULT_PROTECTED_TOOLS,
    DEFAULT_READ_TOOLS,
    DEFAULT_RECENCY_FLOOR_TURNS,
    DEFAULT_SESSION_HEADER,
    DEFAULT_STORAGE_DIR,
    DEFAULT_UPSTREAM_BASE_URL,
    DEFAULT_WRITE_TOOLS,
    NUMERIC_ID_BASE,
    REDACTION_MARKER,
)


def _section(data: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = data.get(key) if isinstance(data, dict) else None
    return value if isinstance(value, dict) else {}


def _clamp_int(value: object, *, default: int, min_value: int, max_value: int) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        v = value
    elif isinstance(value, float):
        v = int(value)
    else:
        return default
    return max(min_value, min(max_value, v))


def _clamp_float(value: object, *, default: float, min_value: float, max_value: float) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return max(min_value, min(max_value, float(value)))
    return default


def _bool(value: object, default: bool) -> bool:
    return value if isinstance(value, bool) else default


def _str(value: object, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


def _str_tuple(value: object, default: Tuple[str, ...]) -> Tuple[str, ...]:
    if not isinstance(value, list):
        return default
    return tuple(item.strip() for item in value if isinstance(item, str) and item.strip())


@dataclass(frozen=True)
class DeduplicationConfig:
    """Stratégie de déduplication des appels identiques."""
    enabled: bool = True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DeduplicationConfig":
        return cls(enabled=_bool(data.get("enabled"), True))


@dataclass(frozen=True)
class SupersedeWritesConfig:
    """Stratégie écriture-remplacée-par-lecture."""
    enabled: bool = True
    write_tools: Tuple[str, ...] = DEFAULT_WRITE_TOOLS
    read_tools: Tuple[str, ...] = DEFAULT_READ_TOOLS

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SupersedeWritesConfig":
        return cls(
            enabled=_bool(data.get("enabled"), True),
            write_tools=_str_tuple(data.get("write_tools"), DEFAULT_WRITE_TOOLS),
            read_tools=_str_tuple(data.get("read_tools"), DEFAULT_READ_TOOLS),
        )


@dataclass(frozen=True)
class PruneToolConfig:
    """Injection de la liste <prunable-tools> et rappel périodique (nudge)."""
    enabled: bool = True
    nudge_enabled: bool = True
    nudge_frequency: int = DEFAULT_NUDGE_FREQUENCY

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PruneToolConfig":
        return cls(
            enabled=_bool(data.get("enabled"), True),
            nudge_enabled=_bool(data.get("nudge_enabled"), True),
            nudge_frequency=_clamp_int(
                data.get("nudge_frequency"),
                default=DEFAULT_NUDGE_FREQUENCY,
                min_value=1,
                max_value=1000,
            ),
        )


@dataclass(frozen=True)
class StorageConfig:
    """Persistance des états de session (un fichier JSON par session)."""
    enabled: bool = True
    directory: str = DEFAULT_STORAGE_DIR

    @property
    def resolved_directory(self) -> str:
        return os.path.expanduser(self.directory)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StorageConfig":
        return cls(
            enabled=_bool(data.get("enabled"), True),
            directory=_str(data.get("directory"), DEFAULT_STORAGE_DIR),
        )


@dataclass(frozen=True)
class UpstreamConfig:
    """Provider LLM vers lequel le proxy relaie les requêtes."""
    base_url: str = DEFAULT_UPSTREAM_BASE_URL
    timeout_s: float = 120.0
    max_retries: int = 2
    retry_delay_s: float = 1.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UpstreamConfig":
        return cls(
            base_url=_str(data.get("base_url"), DEFAULT_UPSTREAM_BASE_URL).rstrip("/"),
            timeout_s=_clamp_float(data.get("timeout_s"), default=120.0, min_value=1.0, max_value=900.0),
            max_retries=_clamp_int(data.get("max_retries"), default=2, min_value=0, max_value=10),
            retry_delay_s=_clamp_float(data.get("retry_delay_s"), default=1.0, min_value=0.0, max_value=60.0),
        )


@dataclass(frozen=True)
class HostConfig:
    """Hôte interrogé pour les liens parent et l'historique (vide = registre local)."""
    base_url: str = ""
    timeout_s: float = 5.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HostConfig":
        base_url = data.get("base_url")
        return cls(
            base_url=base_url.strip().rstrip("/") if isinstance(base_url, str) else "",
            timeout_s=_clamp_float(data.get("timeout_s"), default=5.0, min_value=0.1, max_value=120.0),
        )


@dataclass(frozen=True)
class Settings:
    """Configuration globale du gateway."""
    enabled: bool = True
    protected_tools: Tuple[str, ...] = DEFAULT_PROTECTED_TOOLS
    recency_floor_turns: int = DEFAULT_RECENCY_FLOOR_TURNS
    chars_per_token: int = DEFAULT_CHARS_PER_TOKEN
    redaction_marker: str = REDACTION_MARKER
    session_header: str = DEFAULT_SESSION_HEADER
    parent_header: str = DEFAULT_PARENT_HEADER
    numeric_id_base: int = NUMERIC_ID_BASE
    analysis_timeout_s: float = DEFAULT_ANALYSIS_TIMEOUT_S
    deduplication: DeduplicationConfig = field(default_factory=DeduplicationConfig)
    supersede_writes: SupersedeWritesConfig = field(default_factory=SupersedeWritesConfig)
    prune_tool: PruneToolConfig = field(default_factory=PruneToolConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    upstream: UpstreamConfig = field(default_factory=UpstreamConfig)
    host: HostConfig = field(default_factory=HostConfig)

    @property
    def protected_tool_set(self) -> frozenset:
        return frozenset(tool.lower() for tool in self.protected_tools)

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]]) -> "Settings":
        """Crée une instance depuis la configuration TOML chargée."""
        config = config if isinstance(config, dict) else {}
        gateway = _section(config, "gateway")
        strategies = _section(config, "strategies")
        analysis = _section(config, "analysis")

        return cls(
            enabled=_bool(gateway.get("enabled"), True),
            protected_tools=_str_tuple(gateway.get("protected_tools"), DEFAULT_PROTECTED_TOOLS),
            recency_floor_turns=_clamp_int(
                gateway.get("recency_floor_turns"),
                default=DEFAULT_RECENCY_FLOOR_TURNS,
                min_value=0,
                max_value=1000,
            ),
            chars_per_token=_clamp_int(
                gateway.get("chars_per_token"),
                default=DEFAULT_CHARS_PER_TOKEN,
                min_value=1,
                max_value=32,
            ),
            redaction_marker=_str(gateway.get("redaction_marker"), REDACTION_MARKER),
            session_header=_str(gateway.get("session_header"), DEFAULT_SESSION_HEADER).lower(),
            parent_header=_str(gateway.get("parent_header"), DEFAULT_PARENT_HEADER).lower(),
            numeric_id_base=_clamp_int(
                gateway.get("numeric_id_base"),
                default=NUMERIC_ID_BASE,
                min_value=0,
                max_value=1_000_000,
            ),
            analysis_timeout_s=_clamp_float(
                analysis.get("timeout_s"),
                default=DEFAULT_ANALYSIS_TIMEOUT_S,
                min_value=1.0,
                max_value=600.0,
            ),
            deduplication=DeduplicationConfig.from_dict(_section(strategies, "deduplication")),
            supersede_writes=SupersedeWritesConfig.from_dict(_section(strategies, "supersede_writes")),
            prune_tool=PruneToolConfig.from_dict(_section(config, "prune_tool")),
            storage=StorageConfig.from_dict(_section(config, "storage")),
            upstream=UpstreamConfig.from_dict(_section(config, "upstream")),
            host=HostConfig.from_dict(_section(config, "host")),
        )
