# storage/store.py
"""Artifact stores. The certificate logic only ever sees names, never paths."""
import logging
from pathlib import Path
from typing import Dict, Iterable

from pkichain.common.errors import MissingArtifactError, PersistenceError

log = logging.getLogger(__name__)


class ArtifactStore:
    def write(self, name: str, data: bytes) -> None:
        raise NotImplementedError

    def read(self, name: str) -> bytes:
        raise NotImplementedError

    def exists(self, name: str) -> bool:
        raise NotImplementedError

    def discard(self, names: Iterable[str]) -> None:
        raise NotImplementedError


def _check_name(name: str) -> str:
    if not name or "/" in name or "\\" in name or name in (".", ".."):
        raise PersistenceError(f"invalid artifact name {name!r}")
    return name


class FileArtifactStore(ArtifactStore):
    """Artifacts as files in one directory, created on first write."""

    def __init__(self, root):
        self.root = Path(root)

    def path(self, name: str) -> Path:
        return self.root / _check_name(name)

    def write(self, name: str, data: bytes) -> None:
        p = self.path(name)
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            p.write_bytes(data)
        except OSError as e:
            raise PersistenceError(f"cannot write {p}: {e}") from e
        log.debug("wrote %s (%d bytes)", p, len(data))

    def read(self, name: str) -> bytes:
        p = self.path(name)
        try:
            return p.read_bytes()
        except FileNotFoundError as e:
            raise MissingArtifactError(f"{p} does not exist") from e
        except OSError as e:
            raise PersistenceError(f"cannot read {p}: {e}") from e

    def exists(self, name: str) -> bool:
        return self.path(name).is_file()

    def discard(self, names: Iterable[str]) -> None:
        for name in names:
            p = self.path(name)
            try:
                p.unlink(missing_ok=True)
            except OSError as e:
                raise PersistenceError(f"cannot remove {p}: {e}") from e


class MemoryArtifactStore(ArtifactStore):
    def __init__(self):
        self.items: Dict[str, bytes] = {}

    def write(self, name: str, data: bytes) -> None:
        self.items[_check_name(name)] = bytes(data)

    def read(self, name: str) -> bytes:
        try:
            return self.items[_check_name(name)]
        except KeyError:
            raise MissingArtifactError(f"{name} is not in the store") from None

    def exists(self, name: str) -> bool:
        return _check_name(name) in self.items

    def discard(self, names: Iterable[str]) -> None:
        for name in names:
            self.items.pop(_check_name(name), None)
