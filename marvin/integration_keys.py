"""
# Marvin
# Copyright (c) 2026 Dale Chapman
# Licensed under the MIT License. See LICENSE in the project root.

integration_keys.py

Per-account keys for external integrations.

Key types are registered up front, each with an optional label and a
rights table deciding who may read or write keys of that type:

    ExternalIntegrationKey.key_type(
        "external_key0",
        label="External Key 0",
        rights={"read": True, "write": lambda key, user: user.is_admin},
    )
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

from marvin.errors import RecordInvalid


logger = logging.getLogger(__name__)

POLICY_RIGHTS = ("read", "write")


def _arity(func: Callable[..., Any]) -> Optional[int]:
    try:
        params = inspect.signature(func).parameters.values()
    except (TypeError, ValueError):
        return None
    if any(p.kind in (p.VAR_POSITIONAL, p.VAR_KEYWORD) for p in params):
        return None
    return len(params)


class ExternalIntegrationKey:
    """A single key value of a registered type, owned by an account."""

    _key_types: List[str] = []
    _key_type_labels: Dict[str, Any] = {}
    key_type_rights: Dict[str, Any] = {}

    def __init__(
        self,
        context: Any = None,
        key_type: Optional[str] = None,
        key_value: Optional[str] = None,
        id: Optional[int] = None,
    ):
        self.context = context
        self.key_type = key_type
        self.key_value = key_value
        self.id = id

    # ---------- registry ----------

    @classmethod
    def key_type(cls, name: str, label: Any = None, rights: Any = None) -> None:
        """Register a key type. `label` may be a string or a zero-arg callable."""
        if name not in cls._key_types:
            cls._key_types.append(name)
        cls._key_type_labels[name] = label
        cls.key_type_rights[name] = rights if rights is not None else {}

    @classmethod
    def key_types(cls) -> List[str]:
        return list(cls._key_types)

    @classmethod
    def label_for(cls, key_type: str) -> Any:
        label = cls._key_type_labels.get(key_type)
        if callable(label):
            return label()
        return label

    @classmethod
    def reset_key_types(cls) -> None:
        cls._key_types = []
        cls._key_type_labels = {}
        cls.key_type_rights = {}

    @classmethod
    def indexed_keys_for(
        cls,
        context: Any,
        existing: Iterable["ExternalIntegrationKey"] = (),
    ) -> Dict[str, "ExternalIntegrationKey"]:
        """Keys of `context` by type, with unsaved placeholders for missing types."""
        keys = {key.key_type: key for key in existing if key.context is context}
        for key_type in cls._key_types:
            if key_type not in keys:
                keys[key_type] = cls(context=context, key_type=key_type)
        return keys

    # ---------- context ----------

    @property
    def context_id(self) -> Any:
        return getattr(self.context, "id", None)

    @property
    def context_type(self) -> Optional[str]:
        if self.context is None:
            return None
        return type(self.context).__name__

    @property
    def new_record(self) -> bool:
        return self.id is None

    # ---------- permissions ----------

    def grants_right_for(self, user: Any, right: str) -> Any:
        rights = self.key_type_rights.get(self.key_type)
        if isinstance(rights, dict):
            rights = rights.get(right)
        if callable(rights):
            arity = _arity(rights)
            if arity == 2:
                return rights(self, user)
            if arity == 0:
                return rights()
        return rights

    def grants_right(self, user: Any, right: str) -> bool:
        if right not in POLICY_RIGHTS:
            return False
        return bool(self.grants_right_for(user, right))

    # ---------- validation ----------

    def validate(self, existing: Iterable["ExternalIntegrationKey"] = ()) -> None:
        errors: Dict[str, List[str]] = {}

        context_is_new = self.context is not None and getattr(self.context, "id", None) is None
        if self.context_id is None and not (self.new_record and context_is_new):
            errors.setdefault("context_id", []).append("can't be blank")
        if not self.context_type:
            errors.setdefault("context_type", []).append("can't be blank")
        if not self.key_type:
            errors.setdefault("key_type", []).append("can't be blank")
        if not self.key_value:
            errors.setdefault("key_value", []).append("can't be blank")

        if self.key_type and self.key_type not in self._key_types:
            errors.setdefault("key_type", []).append("is not included in the list")

        taken: Set[str] = {
            other.key_type
            for other in existing
            if other is not self
            and other.context_type == self.context_type
            and other.context_id == self.context_id
        }
        if self.key_type and self.key_type in taken:
            errors.setdefault("key_type", []).append("has already been taken")

        if errors:
            raise RecordInvalid(errors, record=self)
