"""
Snapshot Codec — one JSON document on disk holding the whole simulation.

Behavioral Contract:
- Field-tagged, indented JSON (pydantic) so the file is human-inspectable and
  tolerates additive schema change (unknown fields are ignored on load).
- Times are floats, seconds since the Unix epoch.
- Writes are atomic: temp file in the same directory, fsync, os.replace.
  A failed write never leaves a partial file where load() will look.
- Writes are synchronous, so saves land on disk in the order they are made.
"""

import os
import tempfile
from pathlib import Path
from typing import Optional, Tuple, Union

from loguru import logger
from pydantic import ValidationError

from scavenger_kernel.models.snapshot import Snapshot

DEFAULT_FILENAME = "snapshot.json"
HOME_ENV_VAR = "SCAVENGER_KERNEL_HOME"


class SnapshotDecodeError(Exception):
    """Raised when a stored snapshot cannot be parsed or validated."""
    pass


class SnapshotWriteError(Exception):
    """Raised when a snapshot could not be written to disk."""
    pass


class StorageUnavailableError(Exception):
    """Raised when no writable storage location exists. Deployment error."""
    pass


def encode_snapshot(snapshot: Snapshot, now: float) -> bytes:
    """Serialize a snapshot, stamping ``now`` as the last-active timestamp."""
    stamped = snapshot.model_copy(update={"last_active_timestamp": now})
    return stamped.model_dump_json(indent=2).encode("utf-8")


def decode_snapshot(data: Union[bytes, str]) -> Snapshot:
    try:
        return Snapshot.model_validate_json(data)
    except ValidationError as e:
        raise SnapshotDecodeError(f"Snapshot failed validation: {e}") from e
    except (ValueError, UnicodeDecodeError) as e:
        raise SnapshotDecodeError(f"Snapshot is not valid JSON: {e}") from e


def resolve_save_path(directory: Optional[Union[str, Path]] = None) -> Path:
    """
    Locate the snapshot file, creating its directory if needed.

    Order: explicit ``directory``, $SCAVENGER_KERNEL_HOME, ~/.scavenger_kernel.
    """
    if directory is None:
        directory = os.environ.get(HOME_ENV_VAR) or Path.home() / ".scavenger_kernel"
    base = Path(directory)
    try:
        base.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise StorageUnavailableError(f"Cannot create storage directory {base}: {e}") from e
    if not os.access(base, os.W_OK):
        raise StorageUnavailableError(f"Storage directory {base} is not writable")
    return base / DEFAULT_FILENAME


class SnapshotCodec:
    """Reads and writes the single snapshot file."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._sequence = 0

    @property
    def sequence(self) -> int:
        """Number of successful saves made through this codec."""
        return self._sequence

    def exists(self) -> bool:
        return self.path.exists()

    def save(self, snapshot: Snapshot, now: float) -> bytes:
        """Encode and atomically replace the on-disk snapshot."""
        data = encode_snapshot(snapshot, now)
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                mode="wb",
                dir=self.path.parent,
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                delete=False,
            ) as tmp:
                tmp_name = tmp.name
                tmp.write(data)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_name, self.path)
        except OSError as e:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except FileNotFoundError:
                    pass
            raise SnapshotWriteError(f"Could not write snapshot to {self.path}: {e}") from e

        self._sequence += 1
        return data

    def load(self) -> Optional[Tuple[Snapshot, Optional[float]]]:
        """
        Load the stored snapshot.

        Returns None on first run (no file). Raises SnapshotDecodeError if the
        file exists but cannot be read back.
        """
        if not self.path.exists():
            return None
        try:
            data = self.path.read_bytes()
        except OSError as e:
            raise SnapshotDecodeError(f"Could not read snapshot {self.path}: {e}") from e

        snapshot = decode_snapshot(data)
        return snapshot, snapshot.last_active_timestamp

    def discard(self) -> None:
        """Remove a corrupt snapshot so the next save starts clean."""
        try:
            self.path.unlink()
            logger.warning(f"Discarded snapshot at {self.path}")
        except FileNotFoundError:
            pass
