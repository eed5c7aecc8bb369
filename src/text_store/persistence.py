"""
Persistence gateways for the text store.

A gateway is an opaque load/save pair:
- load() returns the ordered records of the last snapshot, called once at
  start-up (and on explicit reload).
- save(records) overwrites the snapshot with the full contents of the
  primary index, called after every successful mutation.

JsonSnapshotGateway keeps the snapshot in one JSON file (a list of
MultiLangRecord dictionaries). MemoryGateway keeps it in memory and is
used for tests and for seeding a store from Python.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Iterable, List, Optional, Protocol, runtime_checkable

from .errors import DuplicateError, IntegrityFault, PersistenceError, ValidationError
from .models import MultiLangRecord

logger = logging.getLogger(__name__)


@runtime_checkable
class PersistenceGateway(Protocol):
    """Load/store pair used by TextStore."""

    def load(self) -> List[MultiLangRecord]:
        ...

    def save(self, records: Iterable[MultiLangRecord]) -> None:
        ...


class JsonSnapshotGateway:
    """Snapshot stored as a single UTF-8 JSON file."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def __repr__(self) -> str:
        return f"JsonSnapshotGateway({self.path})"

    def load(self) -> List[MultiLangRecord]:
        """
        Read the snapshot file.

        A missing file is an empty store.

        Raises:
            PersistenceError: If the file cannot be read or is malformed.
            IntegrityFault: If a record holds two entries of one language.
        """
        if not self.path.exists():
            logger.info(f"No snapshot at {self.path}, starting empty")
            return []

        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise PersistenceError(
                f"Invalid JSON in snapshot {self.path.name}: {e}",
                context={"path": str(self.path)},
            )
        except OSError as e:
            raise PersistenceError(
                f"Error reading snapshot {self.path.name}: {e}",
                context={"path": str(self.path)},
            )

        if not isinstance(data, list):
            raise PersistenceError(
                f"Snapshot {self.path.name} must contain a JSON list",
                context={"path": str(self.path)},
            )

        records = []
        for position, item in enumerate(data):
            try:
                records.append(MultiLangRecord.from_dict(item))
            except DuplicateError as e:
                raise IntegrityFault(
                    f"Snapshot {self.path.name}: {e.message}",
                    context={"path": str(self.path), "position": position, **e.context},
                )
            except ValidationError as e:
                raise PersistenceError(
                    f"Snapshot {self.path.name}, element {position}: {e.message}",
                    context={"path": str(self.path), "position": position, **e.context},
                )

        logger.debug(f"Loaded {len(records)} record(s) from {self.path}")
        return records

    def save(self, records: Iterable[MultiLangRecord]) -> None:
        """
        Overwrite the snapshot file.

        The file is written next to the target and renamed into place, so a
        reader never sees a half-written snapshot.

        Raises:
            PersistenceError: If the file cannot be written.
        """
        payload = [record.to_dict() for record in records]
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self.path.parent,
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                delete=False,
            ) as f:
                tmp_name = f.name
                json.dump(payload, f, ensure_ascii=False, indent=2)
            os.replace(tmp_name, self.path)
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise PersistenceError(
                f"Could not write snapshot {self.path}: {e}",
                context={"path": str(self.path)},
            )
        logger.debug(f"Saved {len(payload)} record(s) to {self.path}")


class MemoryGateway:
    """
    Snapshot kept in memory as serialized dictionaries.

    Storing dictionaries rather than objects means a load after a save
    goes through the same conversion as the JSON gateway.
    """

    def __init__(self, records: Optional[Iterable[MultiLangRecord]] = None):
        self.snapshot = [record.to_dict() for record in records or []]
        self.save_count = 0

    def load(self) -> List[MultiLangRecord]:
        try:
            return [MultiLangRecord.from_dict(item) for item in self.snapshot]
        except DuplicateError as e:
            raise IntegrityFault(f"Snapshot: {e.message}", context=e.context)

    def save(self, records: Iterable[MultiLangRecord]) -> None:
        self.snapshot = [record.to_dict() for record in records]
        self.save_count += 1
