"""
Rendu de la liste <prunable-tools> injectée dans les requêtes sortantes.

Une ligne par candidat: `<id numérique>: <outil>, <résumé des paramètres>`.
"""
import json
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional

from ..core.constants import NUDGE_INSTRUCTION, SYSTEM_REMINDER
from ..core.models import ToolCallRecord, normalize_call_id
from ..proxy.tool_cache import ToolMetadataCache
from .session_state import SessionStateStore

_MAX_COMMAND_CHARS = 50
_MAX_JSON_CHARS = 50


def _truncate(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


def _param(params: dict, *keys: str) -> Optional[str]:
    for key in keys:
        value = params.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def extract_parameter_key(record: ToolCallRecord) -> str:
    """
    Résumé court des paramètres d'un appel, spécifique à chaque outil.

    Args:
        record: Appel d'outil mis en cache

    Returns:
        Résumé (chaîne vide si rien d'utile à afficher)
    """
    tool = record.tool_name.lower()
    params = record.parameters if isinstance(record.parameters, dict) else {}

    if tool == "read":
        path = _param(params, "filePath", "file_path", "path")
        if path is None:
            return ""
        offset, limit = params.get("offset"), params.get("limit")
        if isinstance(offset, int) and isinstance(limit, int):
            return f"{path} (lines {offset}-{offset + limit})"
        return path

    if tool in ("write", "edit", "multiedit"):
        return _param(params, "filePath", "file_path", "path") or ""

    if tool == "list":
        return _param(params, "path") or "(current directory)"

    if tool in ("glob", "grep"):
        pattern = _param(params, "pattern")
        if pattern is None:
            return ""
        path = _param(params, "path")
        return f'"{pattern}" in {path}' if path else f'"{pattern}"'

    if tool == "bash":
        description = _param(params, "description")
        if description:
            return description
        command = _param(params, "command")
        return _truncate(command, _MAX_COMMAND_CHARS) if command else ""

    if tool == "webfetch":
        return _param(params, "url") or ""

    if tool in ("websearch", "codesearch"):
        query = _param(params, "query")
        return f'"{query}"' if query else ""

    if tool == "todowrite":
        todos = params.get("todos")
        return f"{len(todos)} todos" if isinstance(todos, list) else ""

    if tool == "todoread":
        return "read todo list"

    if tool == "task":
        return _param(params, "description") or ""

    return _render_fallback(record.parameters)


def _render_fallback(parameters: Any) -> str:
    if parameters is None:
        return ""
    try:
        rendered = json.dumps(parameters, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return ""
    if rendered in ("{}", "[]", "null"):
        return ""
    return _truncate(rendered, _MAX_JSON_CHARS)


def describe_call(record: ToolCallRecord) -> str:
    """`outil, résumé` ou juste `outil` si le résumé est vide."""
    key = extract_parameter_key(record)
    return f"{record.tool_name}, {key}" if key else record.tool_name


@dataclass
class PrunableList:
    """Liste rendue + alias numériques correspondants."""
    text: str = ""
    numeric_ids: List[int] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.text)


def build_prunable_tools_list(
    store: SessionStateStore,
    session_id: str,
    call_ids: Iterable[str],
    cache: ToolMetadataCache,
    protected_tools: Iterable[str] = (),
) -> PrunableList:
    """
    Rend la liste des candidats non élagués d'une session.

    Les appels absents du cache ou appartenant à un outil protégé sont omis.
    Les alias numériques sont attribués (ou réutilisés) via le store.
    """
    protected = {t.lower() for t in protected_tools}
    pruned = store.get_pruned_ids(session_id)
    lines: List[str] = []
    numeric_ids: List[int] = []
    seen = set()

    for call_id in call_ids:
        record = cache.get(call_id)
        if record is None or record.tool_name.lower() in protected:
            continue
        key = normalize_call_id(record.call_id)
        if key in pruned or key in seen:
            continue
        seen.add(key)
        numeric_id = store.get_or_assign_numeric_id(session_id, key)
        numeric_ids.append(numeric_id)
        lines.append(f"{numeric_id}: {describe_call(record)}")

    if not lines:
        return PrunableList()
    return PrunableList(
        text="<prunable-tools>\n" + "\n".join(lines) + "\n</prunable-tools>",
        numeric_ids=numeric_ids,
    )


def build_end_injection(
    prunable_list: str,
    include_nudge: bool,
    nudge_instruction: str = NUDGE_INSTRUCTION,
    system_reminder: str = SYSTEM_REMINDER,
) -> str:
    """Rappel système + nudge optionnel + liste; vide si la liste est vide."""
    if not prunable_list:
        return ""
    parts = [system_reminder]
    if include_nudge:
        parts.append(nudge_instruction)
    parts.append(prunable_list)
    return "\n\n".join(parts)
