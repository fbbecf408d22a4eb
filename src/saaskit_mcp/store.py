"""In-memory record storage.

Volatile per-noun storage used by tool execution, resource reads and prompt
rendering. Nothing else in the server holds records.
"""

from __future__ import annotations

import secrets
import string
import threading
from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from typing import Any

ID_ALPHABET = string.ascii_lowercase + string.digits
ID_LENGTH = 12

# Fields maintained by the store itself
TIMESTAMP_FIELDS = ("createdAt", "updatedAt")


class StoreError(Exception):
    """Base class for data store errors."""

    pass


class UnknownNounError(StoreError):
    """Raised when an operation names a noun the store does not hold."""

    pass


class RecordNotFoundError(StoreError):
    """Raised when a record id does not exist for a noun."""

    def __init__(self, noun: str, record_id: str) -> None:
        super().__init__(f"{noun} not found: {record_id}")
        self.noun = noun
        self.record_id = record_id


class RecordExistsError(StoreError):
    """Raised when creating a record whose id is already taken."""

    def __init__(self, noun: str, record_id: str) -> None:
        super().__init__(f"{noun} already exists: {record_id}")
        self.noun = noun
        self.record_id = record_id


def _get_timestamp() -> str:
    """Get current UTC timestamp in ISO 8601 format."""
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


def generate_id(prefix: str = "") -> str:
    """Generate a random record id of lowercase letters and digits."""
    body = "".join(secrets.choice(ID_ALPHABET) for _ in range(ID_LENGTH))
    return f"{prefix}_{body}" if prefix else body


def _values_equal(left: Any, right: Any) -> bool:
    # bool is an int subclass; keep True distinct from 1
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    return left == right


def matches_filter(record: Mapping[str, Any], filter_: Mapping[str, Any]) -> bool:
    """Check that every filter key is present in the record with an equal value."""
    for key, value in filter_.items():
        if key not in record or not _values_equal(record[key], value):
            return False
    return True


class DataStore:
    """Per-noun key-value record storage.

    Collections are created eagerly for every noun passed in. All operations
    take the store lock so concurrent callers never observe partial writes.
    """

    def __init__(self, nouns: Iterable[str] = (), id_prefix: bool = False) -> None:
        """Initialize the store.

        Args:
            nouns: Noun names to allocate collections for.
            id_prefix: Prefix generated ids with the lowercased noun name.
        """
        self._collections: dict[str, dict[str, dict[str, Any]]] = {noun: {} for noun in nouns}
        self._id_prefix = id_prefix
        self._lock = threading.RLock()

    @property
    def nouns(self) -> list[str]:
        return list(self._collections)

    def _collection(self, noun: str) -> dict[str, dict[str, Any]]:
        try:
            return self._collections[noun]
        except KeyError:
            raise UnknownNounError(f"Unknown noun: {noun}") from None

    def create(self, noun: str, data: Mapping[str, Any]) -> dict[str, Any]:
        """Create a record.

        Args:
            noun: Noun name.
            data: Field values; ``id`` is generated when absent or empty.

        Returns:
            The stored record.

        Raises:
            RecordExistsError: If the id is already used for this noun.
            UnknownNounError: If the noun is not part of the schema.
        """
        with self._lock:
            collection = self._collection(noun)
            record_id = data.get("id")
            if record_id in (None, ""):
                prefix = noun.lower() if self._id_prefix else ""
                record_id = generate_id(prefix)
                while record_id in collection:
                    record_id = generate_id(prefix)
            record_id = str(record_id)

            if record_id in collection:
                raise RecordExistsError(noun, record_id)

            now = _get_timestamp()
            record = {**data, "id": record_id, "createdAt": now, "updatedAt": now}
            collection[record_id] = record
            return dict(record)

    def find(self, noun: str, record_id: str) -> dict[str, Any] | None:
        """Get a record by id, or None if it does not exist."""
        with self._lock:
            record = self._collection(noun).get(record_id)
            return dict(record) if record is not None else None

    def get(self, noun: str, record_id: str) -> dict[str, Any]:
        """Get a record by id.

        Raises:
            RecordNotFoundError: If the record does not exist.
        """
        record = self.find(noun, record_id)
        if record is None:
            raise RecordNotFoundError(noun, record_id)
        return record

    def update(self, noun: str, record_id: str, patch: Mapping[str, Any]) -> dict[str, Any]:
        """Merge a patch over an existing record.

        ``id`` and ``createdAt`` cannot be overridden; ``updatedAt`` is
        restamped.

        Raises:
            RecordNotFoundError: If the record does not exist.
        """
        with self._lock:
            collection = self._collection(noun)
            existing = collection.get(record_id)
            if existing is None:
                raise RecordNotFoundError(noun, record_id)

            created_at = existing.get("createdAt")
            existing.update(patch)
            existing["id"] = record_id
            existing["createdAt"] = created_at
            existing["updatedAt"] = _get_timestamp()
            return dict(existing)

    def delete(self, noun: str, record_id: str) -> None:
        """Remove a record.

        Raises:
            RecordNotFoundError: If the record does not exist.
        """
        with self._lock:
            collection = self._collection(noun)
            if record_id not in collection:
                raise RecordNotFoundError(noun, record_id)
            del collection[record_id]

    def list(self, noun: str, filter_: Mapping[str, Any] | None = None) -> list[dict[str, Any]]:
        """List records for a noun, optionally narrowed by exact-match filter."""
        with self._lock:
            records = self._collection(noun).values()
            if filter_:
                return [dict(r) for r in records if matches_filter(r, filter_)]
            return [dict(r) for r in records]

    def exists(self, noun: str, record_id: str) -> bool:
        with self._lock:
            return record_id in self._collection(noun)

    def count(self, noun: str) -> int:
        with self._lock:
            return len(self._collection(noun))

    def accessor(self, noun: str) -> NounAccessor:
        """Bind a noun to this store."""
        self._collection(noun)
        return NounAccessor(self, noun)


class NounAccessor:
    """Store operations bound to a single noun, handed to verb handlers."""

    def __init__(self, store: DataStore, noun: str) -> None:
        self._store = store
        self.noun = noun

    def create(self, data: Mapping[str, Any]) -> dict[str, Any]:
        return self._store.create(self.noun, data)

    def get(self, record_id: str) -> dict[str, Any] | None:
        return self._store.find(self.noun, record_id)

    def list(self, filter_: Mapping[str, Any] | None = None) -> list[dict[str, Any]]:
        return self._store.list(self.noun, filter_)

    def update(self, record_id: str, patch: Mapping[str, Any]) -> dict[str, Any]:
        return self._store.update(self.noun, record_id, patch)

    def delete(self, record_id: str) -> None:
        self._store.delete(self.noun, record_id)
