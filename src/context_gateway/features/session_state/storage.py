"""
Persistance des états de session: un fichier JSON par session.

Écriture atomique (fichier temporaire + replace) via aiofiles.
"""
import asyncio
import hashlib
import json
import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

import aiofiles
import aiofiles.os

from ...core.exceptions import PersistenceError

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class JsonSessionStorage:
    """Stockage fichier des états de session."""

    def __init__(self, directory: str):
        self.directory = Path(os.path.expanduser(directory))

    def path_for(self, session_id: str) -> Path:
        safe = _UNSAFE_CHARS.sub("_", session_id)
        if safe != session_id or not safe:
            # Deux ids différents ne doivent pas partager un fichier
            digest = hashlib.sha1(session_id.encode("utf-8")).hexdigest()[:10]
            safe = f"{safe}-{digest}"
        return self.directory / f"{safe}.json"

    async def load(self, session_id: str) -> Optional[Dict[str, Any]]:
        """
        Lit l'état persisté d'une session.

        Returns:
            Dictionnaire brut, ou None si aucun état n'existe

        Raises:
            PersistenceError: Fichier illisible ou JSON invalide
        """
        path = self.path_for(session_id)
        try:
            data = await self._read_json(path)
        except FileNotFoundError:
            return None
        if not isinstance(data, dict):
            raise PersistenceError("État de session invalide (objet JSON attendu)", session_id, "load")
        return data

    async def load_all(self) -> List[Dict[str, Any]]:
        """Lit tous les états présents dans le répertoire (fichiers invalides ignorés)."""
        try:
            names = await asyncio.to_thread(os.listdir, self.directory)
        except FileNotFoundError:
            return []
        except OSError as e:
            raise PersistenceError(f"Répertoire de sessions illisible: {e}", operation="load_all") from e

        states: List[Dict[str, Any]] = []
        for name in sorted(names):
            if not name.endswith(".json"):
                continue
            try:
                data = await self._read_json(self.directory / name)
            except (FileNotFoundError, PersistenceError) as e:
                logger.warning(f"État de session ignoré ({name}): {e}")
                continue
            if isinstance(data, dict) and isinstance(data.get("session_id"), str):
                states.append(data)
        return states

    async def save(self, session_id: str, data: Dict[str, Any]):
        """
        Écrit l'état d'une session de façon atomique.

        Raises:
            PersistenceError: Échec d'écriture
        """
        path = self.path_for(session_id)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            await asyncio.to_thread(self.directory.mkdir, parents=True, exist_ok=True)
            async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
                await f.write(json.dumps(data, ensure_ascii=False, indent=2))
            await aiofiles.os.replace(tmp_path, path)
        except OSError as e:
            raise PersistenceError(f"Écriture impossible: {e}", session_id, "save") from e

    async def _read_json(self, path: Path) -> object:
        try:
            async with aiofiles.open(path, "r", encoding="utf-8") as f:
                content = await f.read()
        except FileNotFoundError:
            raise
        except OSError as e:
            raise PersistenceError(f"Lecture impossible ({path.name}): {e}", operation="load") from e
        try:
            return json.loads(content)
        except json.JSONDecodeError as e:
            raise PersistenceError(f"JSON invalide ({path.name}): {e}", operation="load") from e
