import hashlib
import json
import os
import tempfile
from pathlib import Path
from typing import Protocol

import structlog

from i3f.config import settings
from i3f.core.exceptions import InvalidIdentifier, NotFoundError, StorageError
from i3f.iiif.request import ProcessResult

logger = structlog.get_logger()


class Storage(Protocol):
    def fetch_origin(self, identifier: str) -> bytes: ...

    def lookup_derivative(self, cache_key: str) -> ProcessResult | None: ...

    def store_derivative(self, cache_key: str, content_type: str, data: bytes) -> None: ...


class LocalStorage:
    """Originals under ``origin_root``; derivatives under ``cache_root`` keyed by sha256."""

    def __init__(self, origin_root: str | Path, cache_root: str | Path | None = None) -> None:
        self.origin_root = Path(origin_root)
        self.cache_root = Path(cache_root) if cache_root is not None else None

    def origin_path(self, identifier: str) -> Path:
        if not identifier or "\x00" in identifier:
            raise InvalidIdentifier(identifier)
        root = self.origin_root.resolve()
        path = (root / identifier).resolve()
        if not path.is_relative_to(root) or path == root:
            raise InvalidIdentifier(identifier)
        return path

    def fetch_origin(self, identifier: str) -> bytes:
        path = self.origin_path(identifier)
        if not path.is_file():
            logger.info("origin_not_found", identifier=identifier)
            raise NotFoundError()
        return path.read_bytes()

    def _derivative_paths(self, cache_key: str) -> tuple[Path, Path]:
        assert self.cache_root is not None
        digest = hashlib.sha256(cache_key.encode("utf-8")).hexdigest()
        base = self.cache_root / digest[:2] / digest
        return base.with_suffix(".bin"), base.with_suffix(".json")

    def lookup_derivative(self, cache_key: str) -> ProcessResult | None:
        if self.cache_root is None:
            return None
        data_path, meta_path = self._derivative_paths(cache_key)
        try:
            meta = json.loads(meta_path.read_text())
            data = data_path.read_bytes()
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            logger.warning("derivative_read_failed", key=cache_key, error=str(e))
            return None
        if meta.get("key") != cache_key:
            logger.warning("derivative_key_mismatch", key=cache_key, stored=meta.get("key"))
            return None
        return ProcessResult(content_type=meta["content_type"], data=data)

    def store_derivative(self, cache_key: str, content_type: str, data: bytes) -> None:
        if self.cache_root is None:
            return
        data_path, meta_path = self._derivative_paths(cache_key)
        meta = json.dumps({"key": cache_key, "content_type": content_type})
        try:
            data_path.parent.mkdir(parents=True, exist_ok=True)
            # data first: a sidecar is only visible once its bytes are in place
            _atomic_write(data_path, data)
            _atomic_write(meta_path, meta.encode("utf-8"))
        except OSError as e:
            logger.error("derivative_store_failed", key=cache_key, error=str(e))
            raise StorageError("Failed to store derivative") from e
        logger.info("derivative_stored", key=cache_key, size=len(data))


def _atomic_write(path: Path, data: bytes) -> None:
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


_storage: LocalStorage | None = None


def get_storage() -> LocalStorage:
    global _storage
    if _storage is None:
        cache_root = settings.cache_path if settings.cache_enabled else None
        _storage = LocalStorage(settings.images_path, cache_root)
    return _storage
