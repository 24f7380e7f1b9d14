"""
Storage Backend Module

Key-value storage abstraction injected into the account registry, with a
thread-safe in-memory implementation. Records are kept by reference: the
ledger stores live Account objects, each guarded by its own lock, and state
lasts for the lifetime of the process only.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
import threading


class StorageInterface(ABC):
    """Abstract interface for storage backends"""

    @abstractmethod
    def save(self, table: str, record_id: str, data: Any) -> None:
        """Save a record to storage"""
        pass

    @abstractmethod
    def load(self, table: str, record_id: str) -> Optional[Any]:
        """Load a record from storage"""
        pass

    @abstractmethod
    def load_all(self, table: str) -> List[Any]:
        """Load all records from a table"""
        pass

    @abstractmethod
    def delete(self, table: str, record_id: str) -> bool:
        """Delete a record from storage"""
        pass

    @abstractmethod
    def exists(self, table: str, record_id: str) -> bool:
        """Check if a record exists"""
        pass

    @abstractmethod
    def count(self, table: str) -> int:
        """Count records in table"""
        pass

    def save_if_absent(self, table: str, record_id: str, data: Any) -> bool:
        """Save only when no record exists under the id; returns True if saved"""
        if self.exists(table, record_id):
            return False
        self.save(table, record_id, data)
        return True


class InMemoryStorage(StorageInterface):
    """In-memory storage implementation"""

    def __init__(self):
        self._data: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.RLock()

    def _ensure_table(self, table: str) -> None:
        """Ensure table exists"""
        if table not in self._data:
            self._data[table] = {}

    def save(self, table: str, record_id: str, data: Any) -> None:
        with self._lock:
            self._ensure_table(table)
            self._data[table][record_id] = data

    def load(self, table: str, record_id: str) -> Optional[Any]:
        with self._lock:
            self._ensure_table(table)
            return self._data[table].get(record_id)

    def load_all(self, table: str) -> List[Any]:
        with self._lock:
            self._ensure_table(table)
            return list(self._data[table].values())

    def delete(self, table: str, record_id: str) -> bool:
        with self._lock:
            self._ensure_table(table)
            if record_id in self._data[table]:
                del self._data[table][record_id]
                return True
            return False

    def exists(self, table: str, record_id: str) -> bool:
        with self._lock:
            self._ensure_table(table)
            return record_id in self._data[table]

    def count(self, table: str) -> int:
        with self._lock:
            self._ensure_table(table)
            return len(self._data[table])

    def save_if_absent(self, table: str, record_id: str, data: Any) -> bool:
        """Save only when no record exists under the id; returns True if saved"""
        with self._lock:
            self._ensure_table(table)
            if record_id in self._data[table]:
                return False
            self._data[table][record_id] = data
            return True
