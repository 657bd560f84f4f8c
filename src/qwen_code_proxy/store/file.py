"""JSON-file key-value store.

The whole store is one JSON object on disk. It is re-read on every operation
so several processes sharing the file see each other's writes. There is no
locking: a read-modify-write from one process can overwrite a concurrent
write from another, and the last writer wins.
"""

from pathlib import Path

import orjson
from structlog import get_logger

from qwen_code_proxy.core.async_utils import run_in_executor
from qwen_code_proxy.exceptions import CredentialsStorageError

from .base import KeyValueStore


logger = get_logger(__name__)


class FileKeyValueStore(KeyValueStore):
    """Key-value store persisted as a single JSON document."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path).expanduser()

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = orjson.loads(self.path.read_bytes())
        except OSError as e:
            raise CredentialsStorageError(
                f"Cannot read store file {self.path}: {e}"
            ) from e
        except orjson.JSONDecodeError as e:
            raise CredentialsStorageError(
                f"Store file {self.path} is not valid JSON: {e}"
            ) from e

        if not isinstance(data, dict):
            raise CredentialsStorageError(
                f"Invalid store file format: expected object, got {type(data).__name__}"
            )
        return {str(key): str(value) for key, value in data.items()}

    def _save(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # Write to temp file first, then rename for atomicity
        temp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            temp_path.write_bytes(orjson.dumps(data, option=orjson.OPT_INDENT_2))
            temp_path.replace(self.path)
        except OSError as e:
            logger.error("store_save_failed", path=str(self.path), error=str(e))
            raise CredentialsStorageError(
                f"Cannot write store file {self.path}: {e}"
            ) from e
        logger.debug("store_saved", path=str(self.path), keys=len(data))

    def _put(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._save(data)

    def _delete(self, key: str) -> bool:
        data = self._load()
        if data.pop(key, None) is None:
            return False
        self._save(data)
        return True

    async def get(self, key: str) -> str | None:
        data = await run_in_executor(self._load)
        return data.get(key)

    async def put(self, key: str, value: str) -> None:
        await run_in_executor(self._put, key, value)

    async def delete(self, key: str) -> bool:
        return await run_in_executor(self._delete, key)

    async def list_keys(self, prefix: str = "") -> list[str]:
        data = await run_in_executor(self._load)
        return [key for key in data if key.startswith(prefix)]

    def get_location(self) -> str:
        return str(self.path)
