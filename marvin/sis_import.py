"""
# Marvin
# Copyright (c) 2026 Dale Chapman
# Licensed under the MIT License. See LICENSE in the project root.

sis_import.py

SIS (Student Information System) CSV import for the account hierarchy.

An accounts.csv looks like:

    account_id,parent_account_id,name,status
    A001,,Humanities,active
    A002,A001,English,active

- account_id / parent_account_id are SIS ids, not internal ids. A blank
  parent hangs the account directly under the root account.
- Header names are matched case-insensitively.
- Each row is applied on its own; a bad row is reported and skipped.
- Existing accounts may leave name and status blank to only move them.

Sticky fields
    name and parent_account_id become "stuck" when someone edits them
    outside of SIS. Later imports leave stuck fields alone unless the
    import overrides stickiness. An import run with add_sis_stickiness
    makes the fields it writes stuck; clear_sis_stickiness releases them.

Rollback
    When the import belongs to an SisBatch, every created account and
    every workflow_state change is recorded, so the batch can later be
    restored with AccountRegistry.restore_states_for_batch().
"""

from __future__ import annotations

import csv
import io
import itertools
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from marvin.config_utils import SisSettings
from marvin.errors import (
    RecordNotFound,
    SISImportError,
    missing_columns_error,
    missing_record_error,
)
from marvin.json_store import read_json, write_json


logger = logging.getLogger(__name__)

STICKY_FIELDS = ("name", "parent_account_id")
NON_EXISTENT = "non-existent"
VALID_STATUSES = ("active", "deleted")


# ============================================================================
# Models
# ============================================================================

@dataclass
class Account:
    id: Optional[int]
    name: Optional[str]
    parent_account_id: Optional[int] = None
    root_account_id: Optional[int] = None
    sis_source_id: Optional[str] = None
    integration_id: Optional[str] = None
    workflow_state: str = "active"
    sis_batch_id: Optional[int] = None
    stuck_sis_fields: Set[str] = field(default_factory=set)

    @property
    def is_root_account(self) -> bool:
        return self.root_account_id is None

    @property
    def active(self) -> bool:
        return self.workflow_state == "active"

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["stuck_sis_fields"] = sorted(self.stuck_sis_fields)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Account":
        data = dict(data)
        data["stuck_sis_fields"] = set(data.get("stuck_sis_fields") or [])
        return cls(**data)


@dataclass
class StickinessOptions:
    add: bool = False
    override: bool = False
    clear: bool = False

    @property
    def overrides(self) -> bool:
        # adding or clearing stickiness implies writing sticky fields
        return self.override or self.add or self.clear

    @classmethod
    def from_settings(cls, settings: SisSettings) -> "StickinessOptions":
        return cls(
            add=settings.add_sis_stickiness,
            override=settings.override_sis_stickiness,
            clear=settings.clear_sis_stickiness,
        )


@dataclass
class SisBatch:
    id: int
    account_id: int
    options: Dict[str, Any] = field(default_factory=dict)
    workflow_state: str = "created"
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


@dataclass
class RollbackData:
    context_type: str
    context_id: int
    previous_workflow_state: str
    updated_workflow_state: str
    batch_id: int


@dataclass
class ImportResult:
    errors: List[Tuple[str, str]] = field(default_factory=list)
    warnings: List[Tuple[str, str]] = field(default_factory=list)
    created: int = 0
    updated: int = 0
    unchanged: int = 0

    @property
    def ok(self) -> bool:
        return not self.errors

    def merge(self, other: "ImportResult") -> None:
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)
        self.created += other.created
        self.updated += other.updated
        self.unchanged += other.unchanged


# ============================================================================
# Registry
# ============================================================================

class AccountRegistry:
    """
    Holds one root account and the accounts below it, plus the SIS
    batches and rollback data recorded against them.
    """

    def __init__(self, root_name: str = "Default Account"):
        self._ids = itertools.count(1)
        self._batch_ids = itertools.count(1)
        self._accounts: Dict[int, Account] = {}
        self.batches: Dict[int, SisBatch] = {}
        self.roll_back_data: List[RollbackData] = []
        root = Account(id=None, name=root_name)
        self.add(root)
        self.root_account = root

    # ---------- lookups ----------

    def get(self, account_id: int) -> Account:
        try:
            return self._accounts[account_id]
        except KeyError:
            raise missing_record_error("Account", account_id)

    def find_by_sis_source_id(self, sis_source_id: str) -> Optional[Account]:
        for account in self._accounts.values():
            if not account.is_root_account and account.sis_source_id == sis_source_id:
                return account
        return None

    def all_accounts(self) -> List[Account]:
        """Every account below the root, in creation order."""
        return [a for a in self._accounts.values() if not a.is_root_account]

    def sis_accounts(self) -> List[Account]:
        return [a for a in self.all_accounts() if a.sis_source_id is not None]

    def parent_account(self, account: Account) -> Optional[Account]:
        if account.parent_account_id is None:
            return None
        return self._accounts.get(account.parent_account_id)

    def sub_accounts(self, account: Account, active_only: bool = False) -> List[Account]:
        return [
            a for a in self._accounts.values()
            if a.parent_account_id == account.id and (a.active or not active_only)
        ]

    def has_active_sub_accounts(self, account: Account) -> bool:
        return bool(self.sub_accounts(account, active_only=True))

    def account_chain(self, account: Account) -> List[Account]:
        """The account followed by each of its ancestors up to the root."""
        chain = []
        seen: Set[int] = set()
        node: Optional[Account] = account
        while node is not None and node.id not in seen:
            chain.append(node)
            seen.add(node.id)
            node = self.parent_account(node)
        return chain

    def would_create_loop(self, account: Account, new_parent: Account) -> bool:
        return any(a.id == account.id for a in self.account_chain(new_parent))

    # ---------- writes ----------

    def add(self, account: Account) -> Account:
        if account.id is None:
            account.id = next(self._ids)
        self._accounts[account.id] = account
        return account

    def update(self, account: Account, **changes: Any) -> Account:
        """
        Apply an edit made outside of SIS (an admin renaming an account,
        moving it in the UI). Changed sticky fields become stuck.
        """
        for attr, value in changes.items():
            if not hasattr(account, attr):
                raise AttributeError(f"Account has no attribute {attr!r}")
            if getattr(account, attr) == value:
                continue
            setattr(account, attr, value)
            if attr in STICKY_FIELDS:
                account.stuck_sis_fields.add(attr)
        return account

    # ---------- batches ----------

    def create_batch(self, options: Optional[Dict[str, Any]] = None) -> SisBatch:
        batch = SisBatch(id=next(self._batch_ids), account_id=self.root_account.id, options=dict(options or {}))
        self.batches[batch.id] = batch
        return batch

    def get_batch(self, batch_id: int) -> SisBatch:
        try:
            return self.batches[batch_id]
        except KeyError:
            raise missing_record_error("SisBatch", batch_id)

    def roll_back_data_for(self, batch: SisBatch) -> List[RollbackData]:
        return [r for r in self.roll_back_data if r.batch_id == batch.id]

    def restore_states_for_batch(self, batch: SisBatch) -> int:
        """
        Put every account the batch touched back into its previous
        workflow_state. Accounts the batch created end up deleted.
        """
        rows = self.roll_back_data_for(batch)
        for row in reversed(rows):
            try:
                account = self.get(row.context_id)
            except RecordNotFound:
                logger.warning("[sis:warn] rollback skipped missing account %s", row.context_id)
                continue
            previous = row.previous_workflow_state
            account.workflow_state = "deleted" if previous == NON_EXISTENT else previous
        batch.workflow_state = "restored"
        logger.info("[sis] restored %d account state(s) for batch %s", len(rows), batch.id)
        return len(rows)

    # ---------- persistence ----------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "root_account_id": self.root_account.id,
            "accounts": [a.to_dict() for a in self._accounts.values()],
            "batches": [asdict(b) for b in self.batches.values()],
            "roll_back_data": [asdict(r) for r in self.roll_back_data],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AccountRegistry":
        registry = cls.__new__(cls)
        registry._accounts = {}
        for row in data.get("accounts", []):
            account = Account.from_dict(row)
            registry._accounts[account.id] = account
        registry.root_account = registry._accounts[data["root_account_id"]]
        registry.batches = {b["id"]: SisBatch(**b) for b in data.get("batches", [])}
        registry.roll_back_data = [RollbackData(**r) for r in data.get("roll_back_data", [])]
        registry._ids = itertools.count(max(registry._accounts) + 1)
        registry._batch_ids = itertools.count(max(registry.batches, default=0) + 1)
        return registry

    def save(self, path: Path) -> None:
        write_json(path, self.to_dict())

    @classmethod
    def load(cls, path: Path, root_name: str = "Default Account") -> "AccountRegistry":
        data = read_json(path)
        if data is None:
            return cls(root_name)
        return cls.from_dict(data)


# ============================================================================
# Importer
# ============================================================================

def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


class AccountImporter:
    """Apply accounts.csv rows to an AccountRegistry."""

    REQUIRED_COLUMNS = ("account_id", "parent_account_id", "name", "status")
    OPTIONAL_COLUMNS = ("integration_id",)

    def __init__(
        self,
        registry: AccountRegistry,
        batch: Optional[SisBatch] = None,
        stickiness: Optional[StickinessOptions] = None,
    ):
        self.registry = registry
        self.batch = batch
        self.stickiness = stickiness or StickinessOptions()

    # ---------- CSV entry points ----------

    def process_file(self, path: Path) -> ImportResult:
        path = Path(path)
        text = path.read_text(encoding="utf-8-sig")
        return self.process_csv_text(text, filename=path.name)

    def process_csv_text(self, text: str, filename: str = "accounts.csv") -> ImportResult:
        reader = csv.DictReader(io.StringIO(text.lstrip("\ufeff")))
        if reader.fieldnames is None:
            return self._finish_file(ImportResult(warnings=[(filename, "File is empty")]))
        reader.fieldnames = [(h or "").strip().lower() for h in reader.fieldnames]

        missing = [c for c in self.REQUIRED_COLUMNS if c not in reader.fieldnames]
        if missing:
            err = missing_columns_error(filename, missing)
            logger.warning("[sis:warn] %s: %s", filename, err.message)
            return self._finish_file(ImportResult(errors=[(filename, err.message)]))

        return self.process_rows(reader, filename)

    def process_rows(self, rows: Iterable[Dict[str, Optional[str]]], filename: str = "accounts.csv") -> ImportResult:
        result = ImportResult()
        for row in rows:
            try:
                outcome = self.add_account(
                    account_id=row.get("account_id"),
                    parent_account_id=row.get("parent_account_id"),
                    name=row.get("name"),
                    status=row.get("status"),
                    integration_id=row.get("integration_id"),
                )
            except SISImportError as e:
                logger.warning("[sis:warn] %s: %s", filename, e.message)
                result.errors.append((filename, e.message))
                continue
            setattr(result, outcome, getattr(result, outcome) + 1)

        self._finish_file(result)
        logger.info(
            "[sis] %s: %d created, %d updated, %d unchanged, %d error(s)",
            filename, result.created, result.updated, result.unchanged, len(result.errors),
        )
        return result

    def _finish_file(self, result: ImportResult) -> ImportResult:
        # a batch that recorded messages keeps that state for its later files
        if self.batch is not None:
            if result.errors:
                self.batch.workflow_state = "imported_with_messages"
            elif self.batch.workflow_state != "imported_with_messages":
                self.batch.workflow_state = "imported"
        return result

    # ---------- single row ----------

    def add_account(
        self,
        account_id: Optional[str],
        parent_account_id: Optional[str],
        name: Optional[str],
        status: Optional[str],
        integration_id: Optional[str] = None,
    ) -> str:
        """
        Create or update one account. Returns "created", "updated" or
        "unchanged"; raises SISImportError when the row is rejected.
        """
        account_id = _clean(account_id)
        parent_account_id = _clean(parent_account_id)
        name = _clean(name)
        status = _clean(status)
        integration_id = _clean(integration_id)

        if not account_id:
            raise SISImportError("No account_id given for an account")

        if status is not None and status.lower() not in VALID_STATUSES:
            raise SISImportError(f'Improper status "{status}" for account {account_id}, skipping')

        parent = None
        if parent_account_id:
            parent = self.registry.find_by_sis_source_id(parent_account_id)
            if parent is None:
                raise SISImportError(f"Parent account didn't exist for {account_id}")

        registry = self.registry
        account = registry.find_by_sis_source_id(account_id)
        is_new = account is None
        if is_new:
            if not name:
                raise SISImportError(f"No name given for account {account_id}, skipping")
            if status is None:
                raise SISImportError(f'Improper status "" for account {account_id}, skipping')
            account = Account(
                id=None,
                name=None,
                root_account_id=registry.root_account.id,
                sis_source_id=account_id,
                workflow_state=status.lower(),
            )

        # Collect everything first so a rejected row leaves the account untouched
        changes: Dict[str, Any] = {}

        if is_new or self._may_write(account, "parent_account_id"):
            new_parent = parent or registry.root_account
            if not is_new and registry.would_create_loop(account, new_parent):
                raise SISImportError(
                    f"Setting account {account_id}'s parent to {parent_account_id} would create a loop"
                )
            changes["parent_account_id"] = new_parent.id

        if name and (is_new or self._may_write(account, "name")):
            changes["name"] = name

        if integration_id:
            changes["integration_id"] = integration_id

        previous_state = NON_EXISTENT if is_new else account.workflow_state
        if status is not None:
            new_state = status.lower()
            if new_state == "deleted" and not is_new and registry.has_active_sub_accounts(account):
                raise SISImportError(
                    f"Cannot delete the sub_account with ID: {account_id} "
                    "because it has active sub accounts."
                )
            changes["workflow_state"] = new_state

        changed = [attr for attr, value in changes.items() if is_new or getattr(account, attr) != value]
        for attr in changed:
            setattr(account, attr, changes[attr])

        for attr in STICKY_FIELDS:
            if attr not in changed:
                continue
            if self.stickiness.add:
                account.stuck_sis_fields.add(attr)
            elif self.stickiness.clear:
                account.stuck_sis_fields.discard(attr)

        batch_changed = False
        if self.batch is not None and account.sis_batch_id != self.batch.id:
            account.sis_batch_id = self.batch.id
            batch_changed = True

        if is_new:
            registry.add(account)

        if self.batch is not None and (is_new or previous_state != account.workflow_state):
            registry.roll_back_data.append(RollbackData(
                context_type="Account",
                context_id=account.id,
                previous_workflow_state=previous_state,
                updated_workflow_state=account.workflow_state,
                batch_id=self.batch.id,
            ))

        if is_new:
            return "created"
        if changed or batch_changed:
            return "updated"
        return "unchanged"

    def _may_write(self, account: Account, attr: str) -> bool:
        return attr not in account.stuck_sis_fields or self.stickiness.overrides
