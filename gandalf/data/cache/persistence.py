"""
Persistence backends for cache records.

Records are JSON objects addressed by a relative path (a tuple of path
parts ending in the record file name), e.g. ``("historical", "matchups",
"2023", "league_1_week_2_matchups.json")``. The stores decide the layout;
backends only read, write, list and delete.

- FileBackend: JSON files under a root directory (durable)
- InMemoryBackend: dict-backed, for tests and throwaway instances
"""
import asyncio
import json
import os
import shutil
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Union

from loguru import logger

from gandalf.config.constants import RECORD_SUFFIX

from .errors import CacheInitializationError, CorruptRecordError

RecordPath = tuple[str, ...]


def _location(path: RecordPath) -> str:
    return "/".join(path)


def _decode(text: str, path: RecordPath) -> dict:
    try:
        record = json.loads(text)
    except ValueError as e:
        raise CorruptRecordError(_location(path), e) from e
    if not isinstance(record, dict):
        raise CorruptRecordError(_location(path), TypeError("record is not an object"))
    return record


class PersistenceBackend(ABC):
    """Abstract base class for record storage."""

    @property
    def name(self) -> str:
        return type(self).__name__

    @abstractmethod
    def ensure_directories(self, *directories: RecordPath) -> None:
        """
        Create the root and the given directories.

        Raises:
            CacheInitializationError: If any directory cannot be created
        """
        pass

    @abstractmethod
    async def read(self, path: RecordPath) -> Optional[dict]:
        """
        Read a record.

        Returns:
            The decoded record, or None if it does not exist

        Raises:
            CorruptRecordError: If the record exists but cannot be parsed
            OSError: On any other storage failure
        """
        pass

    @abstractmethod
    async def write(self, path: RecordPath, record: dict) -> None:
        """Write a record, creating parent directories as needed."""
        pass

    @abstractmethod
    async def delete(self, path: RecordPath) -> bool:
        """Delete a record. Returns True if something was removed."""
        pass

    @abstractmethod
    async def list_records(self, directory: RecordPath = ()) -> list[RecordPath]:
        """List record paths directly inside a directory (not recursive)."""
        pass

    @abstractmethod
    async def find(self, directory: RecordPath, record_name: str) -> list[RecordPath]:
        """Find every record with the given file name below a directory."""
        pass

    @abstractmethod
    async def remove_tree(self, directory: RecordPath) -> None:
        """Delete a directory and everything below it."""
        pass

    async def close(self) -> None:
        """Release backend resources."""
        return None


class FileBackend(PersistenceBackend):
    """
    JSON-file backend.

    One file per record under `root`. Blocking file I/O runs in the
    default executor so the event loop is never blocked on disk.
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)
        self.logger = logger.bind(component="persistence")

    @property
    def name(self) -> str:
        return f"FileBackend({self.root})"

    def _resolve(self, path: RecordPath) -> Path:
        return self.root.joinpath(*path)

    def ensure_directories(self, *directories: RecordPath) -> None:
        for directory in ((),) + directories:
            target = self._resolve(directory)
            if target.is_dir():
                continue
            try:
                target.mkdir(parents=True, exist_ok=True)
                self.logger.debug(f"Created cache directory: {target}")
            except OSError as e:
                self.logger.error(f"Cannot create cache directory {target}: {e}")
                raise CacheInitializationError(target, e) from e

    async def read(self, path: RecordPath) -> Optional[dict]:
        loop = asyncio.get_event_loop()
        file_path = self._resolve(path)

        def _read() -> Optional[str]:
            try:
                return file_path.read_text(encoding="utf-8")
            except FileNotFoundError:
                return None
            except UnicodeDecodeError as e:
                raise CorruptRecordError(_location(path), e) from e

        text = await loop.run_in_executor(None, _read)
        if text is None:
            return None
        return _decode(text, path)

    async def write(self, path: RecordPath, record: dict) -> None:
        loop = asyncio.get_event_loop()
        file_path = self._resolve(path)
        payload = json.dumps(record)

        def _write() -> None:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=file_path.parent, prefix=f".{file_path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(payload)
                os.replace(tmp_name, file_path)
            except BaseException:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    pass
                raise

        await loop.run_in_executor(None, _write)

    async def delete(self, path: RecordPath) -> bool:
        loop = asyncio.get_event_loop()
        file_path = self._resolve(path)

        def _delete() -> bool:
            try:
                file_path.unlink()
                return True
            except FileNotFoundError:
                return False

        return await loop.run_in_executor(None, _delete)

    async def list_records(self, directory: RecordPath = ()) -> list[RecordPath]:
        loop = asyncio.get_event_loop()
        dir_path = self._resolve(directory)

        def _list() -> list[RecordPath]:
            if not dir_path.is_dir():
                return []
            return [
                directory + (entry.name,)
                for entry in sorted(dir_path.iterdir())
                if entry.is_file()
                and entry.name.endswith(RECORD_SUFFIX)
                and not entry.name.startswith(".")
            ]

        return await loop.run_in_executor(None, _list)

    async def find(self, directory: RecordPath, record_name: str) -> list[RecordPath]:
        loop = asyncio.get_event_loop()
        dir_path = self._resolve(directory)

        def _find() -> list[RecordPath]:
            matches = []
            for current, _, files in os.walk(dir_path):
                if record_name in files:
                    relative = Path(current).relative_to(dir_path).parts
                    matches.append(directory + relative + (record_name,))
            return sorted(matches)

        return await loop.run_in_executor(None, _find)

    async def remove_tree(self, directory: RecordPath) -> None:
        loop = asyncio.get_event_loop()
        dir_path = self._resolve(directory)

        def _remove() -> None:
            if dir_path.exists():
                shutil.rmtree(dir_path)

        await loop.run_in_executor(None, _remove)


class InMemoryBackend(PersistenceBackend):
    """
    Dict-backed backend with the same semantics as FileBackend.

    Records are held as JSON text so that serialization failures and
    corrupt records behave the way they would on disk.
    """

    def __init__(self):
        self._records: dict[RecordPath, str] = {}
        self._directories: set[RecordPath] = {()}

    def ensure_directories(self, *directories: RecordPath) -> None:
        for directory in directories:
            for i in range(1, len(directory) + 1):
                self._directories.add(directory[:i])

    def put_raw(self, path: RecordPath, text: str) -> None:
        """Store raw text as a record, bypassing serialization."""
        self.ensure_directories(path[:-1])
        self._records[path] = text

    def directory_exists(self, directory: RecordPath) -> bool:
        return directory in self._directories

    async def read(self, path: RecordPath) -> Optional[dict]:
        text = self._records.get(path)
        if text is None:
            return None
        return _decode(text, path)

    async def write(self, path: RecordPath, record: dict) -> None:
        payload = json.dumps(record)
        self.ensure_directories(path[:-1])
        self._records[path] = payload

    async def delete(self, path: RecordPath) -> bool:
        return self._records.pop(path, None) is not None

    async def list_records(self, directory: RecordPath = ()) -> list[RecordPath]:
        depth = len(directory) + 1
        return sorted(
            path
            for path in self._records
            if len(path) == depth and path[:-1] == directory
        )

    async def find(self, directory: RecordPath, record_name: str) -> list[RecordPath]:
        prefix_len = len(directory)
        return sorted(
            path
            for path in self._records
            if path[:prefix_len] == directory
            and len(path) > prefix_len
            and path[-1] == record_name
        )

    async def remove_tree(self, directory: RecordPath) -> None:
        prefix_len = len(directory)
        for path in [p for p in self._records if p[:prefix_len] == directory]:
            del self._records[path]
        self._directories = {d for d in self._directories if d[:prefix_len] != directory}
        self._directories.add(())
