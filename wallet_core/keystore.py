"""Local keystore persistence for named signing keys."""

from pathlib import Path
from typing import Dict, Iterable, Protocol, Tuple
import json

from loguru import logger

from .models import KeyRecord


class KeyStore(Protocol):
    def store(self, record: KeyRecord) -> None:
        ...

    def load(self, name: str) -> KeyRecord:
        ...

    def list_records(self) -> Tuple[KeyRecord, ...]:
        ...


class FileKeyStore:
    def __init__(self, path: Path) -> None:
        self._path = path

    def store(self, record: KeyRecord) -> None:
        records = {item.name: item for item in self._read_all()}
        records[record.name] = record
        self._write_all(records.values())
        logger.debug(f"Stored key '{record.name}' in {self._path}")

    def load(self, name: str) -> KeyRecord:
        for record in self._read_all():
            if record.name == name:
                return record
        raise KeyError(f"Unknown key: {name}")

    def list_records(self) -> Tuple[KeyRecord, ...]:
        return tuple(sorted(self._read_all(), key=lambda record: record.name))

    def _read_all(self) -> Tuple[KeyRecord, ...]:
        if not self._path.exists():
            return ()
        data = json.loads(self._path.read_text())
        return tuple(KeyRecord.from_dict(item) for item in data)

    def _write_all(self, records: Iterable[KeyRecord]) -> None:
        payload = [record.to_dict() for record in records]
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(payload, indent=2))


class MemoryKeyStore:
    """Process-local keystore, used by tests and the web shell."""

    def __init__(self) -> None:
        self._records: Dict[str, KeyRecord] = {}

    def store(self, record: KeyRecord) -> None:
        self._records[record.name] = record

    def load(self, name: str) -> KeyRecord:
        if name not in self._records:
            raise KeyError(f"Unknown key: {name}")
        return self._records[name]

    def list_records(self) -> Tuple[KeyRecord, ...]:
        return tuple(sorted(self._records.values(), key=lambda record: record.name))
