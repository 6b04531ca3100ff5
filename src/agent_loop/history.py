# history.py
# Append-only behavior history: one JSON array of BehaviorRecords per agent
# at <base_dir>/agents/<agent>/behavior.json.
#
# Every append reads the whole array, adds one record and atomically
# replaces the file. Appends for the same agent are serialized within this
# store instance; writers in other processes are not coordinated.

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from agent_loop.errors import HistoryError
from agent_loop.models import BehaviorRecord

logger = logging.getLogger(__name__)

_RECORDS = TypeAdapter(list[BehaviorRecord])


class HistoryStore:
    """
    File-backed behavior log.

    Example:
        store = HistoryStore(".connectonion")
        await store.append("assistant", record)
        records = await store.load("assistant")
    """

    def __init__(self, base_dir: str | os.PathLike) -> None:
        self.base_dir = Path(base_dir)
        self._locks: dict[str, asyncio.Lock] = {}

    def path_for(self, agent_name: str) -> Path:
        return self.base_dir / "agents" / agent_name / "behavior.json"

    def _lock_for(self, agent_name: str) -> asyncio.Lock:
        lock = self._locks.get(agent_name)
        if lock is None:
            lock = self._locks[agent_name] = asyncio.Lock()
        return lock

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def append(self, agent_name: str, record: BehaviorRecord) -> None:
        async with self._lock_for(agent_name):
            await asyncio.to_thread(self._append_sync, agent_name, record)

    async def load(self, agent_name: str) -> list[BehaviorRecord]:
        async with self._lock_for(agent_name):
            return await asyncio.to_thread(self._read, self.path_for(agent_name))

    # ------------------------------------------------------------------
    # Blocking file I/O (runs in a worker thread)
    # ------------------------------------------------------------------

    def _read(self, path: Path) -> list[BehaviorRecord]:
        if not path.exists():
            return []
        data = path.read_bytes()
        if not data.strip():
            return []
        try:
            return _RECORDS.validate_json(data)
        except ValidationError as exc:
            raise HistoryError(f"Cannot decode history file {path}: {exc}") from exc

    def _append_sync(self, agent_name: str, record: BehaviorRecord) -> None:
        path = self.path_for(agent_name)
        path.parent.mkdir(parents=True, exist_ok=True)

        records = self._read(path)
        records.append(record)
        payload = json.dumps(
            _RECORDS.dump_python(records, mode="json"),
            ensure_ascii=False,
            indent=2,
        )
        self._write_atomic(path, payload)
        logger.debug("Appended record %d to %s", len(records), path)

    @staticmethod
    def _write_atomic(path: Path, payload: str) -> None:
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".behavior-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
