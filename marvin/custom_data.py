"""
# Marvin
# Copyright (c) 2026 Dale Chapman
# Licensed under the MIT License. See LICENSE in the project root.

custom_data.py

Arbitrary JSON data stored per user and namespace, addressed by scopes.

A scope is a "/"-separated path into a nested hash, e.g. "prefs/color".
Every value lives below the internal top-level key "d", so the record
{"d": {"prefs": {"color": "blue"}}} answers get_data("prefs/color").

Writing through a scope creates the mappings along the way. Writing
below a value that is not a mapping is a WriteConflict: "prefs/color/x"
cannot be set while "prefs/color" holds a string.
"""

from __future__ import annotations

import copy
import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

from marvin.errors import MarvinError, RecordInvalid
from marvin.json_store import read_json, write_json


logger = logging.getLogger(__name__)

ROOT_KEY = "d"


class InvalidScope(MarvinError, ValueError):
    """The scope does not address anything in the hash"""

    def __init__(self, scope: str):
        self.scope = scope
        super().__init__("invalid scope for hash", context={"scope": scope})


class WriteConflict(MarvinError):
    """A write would have to descend through a non-mapping value"""

    def __init__(self, conflict_scope: str, type_at_conflict: str, value_at_conflict: Any):
        self.conflict_scope = conflict_scope
        self.type_at_conflict = type_at_conflict
        self.value_at_conflict = value_at_conflict
        super().__init__(
            "write conflict for custom_data hash",
            context={"conflict_scope": conflict_scope, "type_at_conflict": type_at_conflict},
        )

    def as_json(self) -> Dict[str, Any]:
        return {
            "conflict_scope": self.conflict_scope,
            "type_at_conflict": self.type_at_conflict,
            "value_at_conflict": self.value_at_conflict,
        }


def _scope_keys(scope: str) -> List[str]:
    keys = f"{ROOT_KEY}/{scope}".split("/")
    # "d/" addresses the whole hash, like a trailing-slash-free path would
    while len(keys) > 1 and keys[-1] == "":
        keys.pop()
    return keys


class CustomData:
    """One user's data in one namespace."""

    def __init__(self, user_id: Any, namespace: Optional[str], data: Optional[Dict[str, Any]] = None):
        self.user_id = user_id
        self.namespace = namespace
        self.data: Dict[str, Any] = data if data is not None else {}
        self.destroyed = False

    @property
    def key(self) -> Tuple[str, str]:
        return (str(self.user_id), self.namespace or "")

    def validate(self) -> None:
        errors: Dict[str, List[str]] = {}
        if self.user_id in (None, ""):
            errors["user"] = ["can't be blank"]
        if not self.namespace:
            errors["namespace"] = ["can't be blank"]
        if errors:
            raise RecordInvalid(errors, record=self)

    def get_data(self, scope: str) -> Any:
        node: Any = self.data
        for key in _scope_keys(scope):
            if not isinstance(node, dict):
                raise InvalidScope(scope)
            node = node.get(key)
        return node

    def set_data(self, scope: str, value: Any) -> bool:
        """Store `value` at `scope`. Returns True when a value was replaced."""
        keys = _scope_keys(scope)
        last = keys.pop()

        node = self.data
        for idx, key in enumerate(keys):
            child = node.get(key)
            if child is None:
                child = node[key] = {}
            elif not isinstance(child, dict):
                raise WriteConflict(
                    conflict_scope="/".join(keys[1:idx + 1]),
                    type_at_conflict=type(child).__name__,
                    value_at_conflict=child,
                )
            node = child

        overwrite = node.get(last) is not None
        node[last] = value
        return overwrite

    def delete_data(self, scope: str) -> Any:
        """Remove the value at `scope`, pruning mappings it leaves empty."""
        keys = _scope_keys(scope)

        def delete_from(node: Dict[str, Any], remaining: List[str]) -> Any:
            key = remaining[0]
            if len(remaining) == 1:
                if key not in node:
                    raise InvalidScope(scope)
                return node.pop(key)
            child = node.get(key)
            if not isinstance(child, dict):
                raise InvalidScope(scope)
            removed = delete_from(child, remaining[1:])
            if not child:
                del node[key]
            return removed

        removed = delete_from(self.data, keys)
        if not self.data:
            self.destroyed = True
        return removed

    def to_dict(self) -> Dict[str, Any]:
        return {"user_id": self.user_id, "namespace": self.namespace, "data": self.data}


class CustomDataStore:
    """
    Keeps CustomData records, optionally persisted to a JSON file.

    Updates should go through lock_and_save(), which serializes writers
    and only commits the record when the block finishes without error.
    """

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else None
        self._records: Dict[Tuple[str, str], CustomData] = {}
        self._lock = threading.RLock()
        if self.path:
            for row in read_json(self.path, default=[]):
                record = CustomData(row["user_id"], row["namespace"], row.get("data") or {})
                self._records[record.key] = record

    def find(self, user_id: Any, namespace: str) -> Optional[CustomData]:
        return self._records.get((str(user_id), namespace))

    def find_or_initialize(self, user_id: Any, namespace: str) -> CustomData:
        return self.find(user_id, namespace) or CustomData(user_id, namespace)

    def all(self) -> List[CustomData]:
        return list(self._records.values())

    def save(self, record: CustomData) -> None:
        record.validate()
        with self._lock:
            self._records[record.key] = record
            self._persist()

    def destroy(self, record: CustomData) -> None:
        with self._lock:
            self._records.pop(record.key, None)
            record.destroyed = True
            self._persist()

    @contextmanager
    def lock_and_save(self, user_id: Any, namespace: str) -> Iterator[CustomData]:
        """
        Yield a working copy of the record while holding the store lock.

        The copy replaces the stored record when the block completes, or
        removes it if the block emptied it. An exception leaves the stored
        record untouched.
        """
        with self._lock:
            current = self.find_or_initialize(user_id, namespace)
            working = CustomData(current.user_id, current.namespace, copy.deepcopy(current.data))
            yield working
            if working.destroyed:
                logger.debug("[custom_data] %s/%s emptied, removing", user_id, namespace)
                self.destroy(working)
            else:
                self.save(working)

    def _persist(self) -> None:
        if self.path:
            write_json(self.path, [r.to_dict() for r in self._records.values()])
