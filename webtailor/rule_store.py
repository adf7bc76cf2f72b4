"""
Rule persistence for webtailor.

Maintains:
  - KeyValueStore: the persistence boundary (``get(keys)`` / ``set(mapping)``)
  - RuleStore:     origin key -> size-bounded list of Rules, stored under ``domainRules``
  - SettingsStore: the API key and the global prompt text, stored beside the rules

The in-memory rule mapping is authoritative for the session: a failed write
is logged and the session keeps going with the in-memory state.
"""

import abc
import asyncio
import json
import os
import tempfile
from typing import Any, Dict, Iterable, List, Optional

from pydantic import ValidationError

from .config import settings
from .errors import PersistenceError
from .models.schemas import Rule
from .utils.logger import get_logger

logger = get_logger(__name__)

RULES_KEY = "domainRules"
API_KEY_KEY = "apiKey"
GLOBAL_PROMPT_KEY = "globalPromptText"


# ============================================================================
# Key-value backends
# ============================================================================

class KeyValueStore(abc.ABC):
    """Persistence boundary. Implementations raise PersistenceError on failure."""

    @abc.abstractmethod
    async def get(self, keys: Iterable[str]) -> Dict[str, Any]:
        """Return the subset of *keys* that are present."""

    @abc.abstractmethod
    async def set(self, mapping: Dict[str, Any]) -> None:
        """Write every entry of *mapping*."""


class MemoryStore(KeyValueStore):
    """Process-local store; contents are lost when the process exits."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self.data: Dict[str, Any] = json.loads(json.dumps(initial or {}))

    async def get(self, keys: Iterable[str]) -> Dict[str, Any]:
        return {k: json.loads(json.dumps(self.data[k])) for k in keys if k in self.data}

    async def set(self, mapping: Dict[str, Any]) -> None:
        for key, value in mapping.items():
            self.data[key] = json.loads(json.dumps(value))


class JsonFileStore(KeyValueStore):
    """
    Single JSON document on disk.

    Writes go to a uniquely named temporary sibling file first and are moved
    into place, so a crash never leaves a half-written document behind. One
    lock serializes every read and read-modify-write on this instance.
    """

    def __init__(self, path: Optional[str] = None):
        self.path = path or settings.RULES_PATH
        self._lock = asyncio.Lock()

    def _read(self) -> Dict[str, Any]:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"{self.path} does not hold a JSON object")
        return data

    def _write(self, mapping: Dict[str, Any]) -> None:
        data = self._read()
        data.update(mapping)
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "w", encoding="utf-8", dir=directory, suffix=".tmp", delete=False
        ) as f:
            tmp_path = f.name
            try:
                json.dump(data, f, indent=2, ensure_ascii=False)
            except (TypeError, ValueError):
                f.close()
                os.remove(tmp_path)
                raise
        try:
            os.replace(tmp_path, self.path)
        except OSError:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    async def get(self, keys: Iterable[str]) -> Dict[str, Any]:
        try:
            async with self._lock:
                data = await asyncio.to_thread(self._read)
        except (OSError, ValueError) as e:
            raise PersistenceError("read", e) from e
        return {k: data[k] for k in keys if k in data}

    async def set(self, mapping: Dict[str, Any]) -> None:
        try:
            async with self._lock:
                await asyncio.to_thread(self._write, mapping)
        except (OSError, ValueError, TypeError) as e:
            raise PersistenceError("write", e) from e


# ============================================================================
# RuleStore
# ============================================================================

class RuleStore:
    """
    Per-origin rule lists capped at ``max_rules``.

    When an insert exceeds the cap the list is sorted newest first and
    truncated, so the oldest rules are evicted. Identical commands are not
    deduplicated. Every mutation runs under one lock and writes the full
    mapping through to the backend.
    """

    def __init__(self, backend: KeyValueStore, max_rules: Optional[int] = None):
        self.backend = backend
        self.max_rules = settings.MAX_RULES_PER_ORIGIN if max_rules is None else max_rules
        self._rules: Dict[str, List[Rule]] = {}
        self._lock = asyncio.Lock()
        self.loaded = False

    async def load_all(self) -> None:
        """Read every origin's rules from the backend, replacing the in-memory state."""
        async with self._lock:
            await self._load()

    async def _load(self) -> None:
        # caller holds self._lock
        try:
            raw = (await self.backend.get([RULES_KEY])).get(RULES_KEY) or {}
        except PersistenceError as e:
            logger.error(f"[RuleStore] Failed to load rules: {e}")
            raw = {}

        rules: Dict[str, List[Rule]] = {}
        for origin, items in (raw.items() if isinstance(raw, dict) else []):
            parsed = []
            for item in items or []:
                try:
                    parsed.append(Rule.model_validate(item))
                except ValidationError as e:
                    logger.warning(f"[RuleStore] Dropping malformed rule for {origin}: {e.error_count()} error(s)")
            if parsed:
                rules[origin] = parsed

        self._rules = rules
        self.loaded = True
        logger.info(f"[RuleStore] Loaded rules for {len(rules)} origin(s): {', '.join(rules) or '-'}")

    async def save(self, origin: str, rule: Rule) -> bool:
        """
        Append *rule* to *origin*, enforce the cap and write through.

        Stored rules are loaded first if nothing has been read yet, so the
        write never drops other origins.

        Returns:
            True if the backend write succeeded
        """
        async with self._lock:
            if not self.loaded:
                await self._load()
            rules = self._rules.setdefault(origin, [])
            rules.append(rule)
            if len(rules) > self.max_rules:
                rules.sort(key=lambda r: r.timestamp, reverse=True)
                evicted = len(rules) - self.max_rules
                del rules[self.max_rules:]
                logger.info(f"[RuleStore] Evicted {evicted} oldest rule(s) for {origin}")
            logger.info(f"[RuleStore] Saved rule for {origin}: {rule.command[:60]!r} ({len(rules)} total)")
            return await self._persist()

    async def load(self, origin: str) -> List[Rule]:
        """Rules stored for *origin* in stored order; empty if none."""
        async with self._lock:
            if not self.loaded:
                await self._load()
            return list(self._rules.get(origin, []))

    async def clear(self, origin: str) -> bool:
        """Remove every rule for *origin* and write through."""
        async with self._lock:
            if not self.loaded:
                await self._load()
            if self._rules.pop(origin, None) is None:
                return True
            logger.info(f"[RuleStore] Cleared rules for {origin}")
            return await self._persist()

    def origins(self) -> List[str]:
        return sorted(self._rules)

    def has_rules(self, origin: str) -> bool:
        return bool(self._rules.get(origin))

    async def _persist(self) -> bool:
        payload = {
            origin: [r.model_dump(mode="json") for r in rules]
            for origin, rules in self._rules.items()
        }
        try:
            await self.backend.set({RULES_KEY: payload})
            return True
        except PersistenceError as e:
            logger.error(f"[RuleStore] Write failed; keeping in-memory rules for this session: {e}")
            return False


# ============================================================================
# SettingsStore
# ============================================================================

class SettingsStore:
    """API key and global prompt text, kept in the same backend as the rules."""

    def __init__(self, backend: KeyValueStore):
        self.backend = backend

    async def load(self) -> Dict[str, str]:
        try:
            stored = await self.backend.get([API_KEY_KEY, GLOBAL_PROMPT_KEY])
        except PersistenceError as e:
            logger.error(f"[SettingsStore] Failed to load settings: {e}")
            stored = {}
        return {
            API_KEY_KEY: stored.get(API_KEY_KEY) or "",
            GLOBAL_PROMPT_KEY: stored.get(GLOBAL_PROMPT_KEY) or "",
        }

    async def api_key(self) -> str:
        return (await self.load())[API_KEY_KEY]

    async def global_prompt(self) -> str:
        return (await self.load())[GLOBAL_PROMPT_KEY]

    async def update(self, api_key: Optional[str] = None, global_prompt: Optional[str] = None) -> None:
        """Write whichever values are given. Raises PersistenceError."""
        mapping: Dict[str, Any] = {}
        if api_key is not None:
            mapping[API_KEY_KEY] = api_key.strip()
        if global_prompt is not None:
            mapping[GLOBAL_PROMPT_KEY] = global_prompt.strip()
        if mapping:
            await self.backend.set(mapping)
            logger.info(f"[SettingsStore] Updated: {', '.join(mapping)}")
