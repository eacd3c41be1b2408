"""Per-entity create/update/skip decisions for validated rows.

Each upserter owns one entity type's natural key and reference numbering.
The worker picks one upserter per job and calls ``upsert`` once per row;
every call commits independently so later rows see earlier rows' writes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Sequence

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from bulk_import.core.enums import DuplicatePolicy, EntityType
from bulk_import.db.base import utcnow
from bulk_import.db.models import Client, Employee, Site, SupplierInvoice, Task
from bulk_import.services.errors import PotentialDuplicateError
from bulk_import.services.similarity import is_fuzzy_match

logger = logging.getLogger(__name__)


class UpsertOutcome(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class EmployeeName:
    """Identity fields of an existing employee, frozen at job start."""

    id: str
    first_name: str
    last_name: str
    professional_email: str | None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


def load_employee_snapshot(db: Session) -> tuple[EmployeeName, ...]:
    rows = db.execute(
        select(
            Employee.id,
            Employee.first_name,
            Employee.last_name,
            Employee.professional_email,
        )
    ).all()
    return tuple(EmployeeName(*row) for row in rows)


class RecordUpserter:
    """Shared shape: look up by natural key, then update, skip or create."""

    model: ClassVar[type]

    def __init__(self, db: Session, policy: DuplicatePolicy | str):
        self.db = db
        self.policy = DuplicatePolicy(policy)

    def find_existing(self, data: dict[str, Any]):
        raise NotImplementedError

    def before_create(self, data: dict[str, Any]) -> dict[str, Any]:
        return data

    def upsert(self, data: dict[str, Any]) -> UpsertOutcome:
        existing = self.find_existing(data)
        if existing is not None:
            if self.policy is DuplicatePolicy.SKIP:
                return UpsertOutcome.SKIPPED
            for key, value in data.items():
                setattr(existing, key, value)
            self.db.commit()
            return UpsertOutcome.UPDATED

        record = self.model(**self.before_create(dict(data)))
        self.db.add(record)
        self.db.commit()
        return UpsertOutcome.CREATED

    def _first(self, *conditions):
        return self.db.scalars(select(self.model).where(*conditions).limit(1)).first()

    def _next_number(self) -> int:
        return (self.db.scalar(select(func.count()).select_from(self.model)) or 0) + 1


class ClientUpserter(RecordUpserter):
    model = Client

    def find_existing(self, data):
        siret = data.get("siret")
        return self._first(Client.siret == siret) if siret else None


class EmployeeUpserter(RecordUpserter):
    """Exact match on professional email, then a fuzzy full-name check.

    The name check runs against a snapshot taken once per job, so employees
    created earlier in the same job are not considered. A fuzzy hit only
    blocks rows under `skip`; under `update` it never selects a target.
    """

    model = Employee

    def __init__(
        self,
        db: Session,
        policy: DuplicatePolicy | str,
        snapshot: Sequence[EmployeeName] = (),
        threshold: int = 3,
    ):
        super().__init__(db, policy)
        self.snapshot = tuple(snapshot)
        self.threshold = threshold

    def find_existing(self, data):
        email = (data.get("professional_email") or "").lower()
        if not email:
            return None
        return self._first(func.lower(Employee.professional_email) == email)

    def before_create(self, data):
        full_name = f"{data.get('first_name') or ''} {data.get('last_name') or ''}".strip()
        match = next(
            (e for e in self.snapshot if is_fuzzy_match(e.full_name, full_name, self.threshold)),
            None,
        )
        if match is not None and self.policy is DuplicatePolicy.SKIP:
            raise PotentialDuplicateError(
                f'Potential duplicate (similar name): "{match.full_name}"'
            )
        return data


class SiteUpserter(RecordUpserter):
    model = Site

    def find_existing(self, data):
        address, client_id = data.get("address"), data.get("client_id")
        if not (address and client_id):
            return None
        return self._first(Site.address == address, Site.client_id == client_id)

    def before_create(self, data):
        data["reference"] = f"SITE-{self._next_number():05d}"
        return data


class TaskUpserter(RecordUpserter):
    model = Task

    def find_existing(self, data):
        title, project_id = data.get("title"), data.get("project_id")
        if not (title and project_id):
            return None
        return self._first(Task.title == title, Task.project_id == project_id)

    def before_create(self, data):
        data["reference"] = f"TASK-{utcnow():%Y%m}-{self._next_number():05d}"
        return data


class SupplierInvoiceUpserter(RecordUpserter):
    model = SupplierInvoice

    def find_existing(self, data):
        reference = data.get("reference")
        return self._first(SupplierInvoice.reference == reference) if reference else None


UPSERTERS: dict[EntityType, type[RecordUpserter]] = {
    EntityType.CLIENT: ClientUpserter,
    EntityType.EMPLOYEE: EmployeeUpserter,
    EntityType.SITE: SiteUpserter,
    EntityType.TASK: TaskUpserter,
    EntityType.SUPPLIER_INVOICE: SupplierInvoiceUpserter,
}


def get_upserter(
    db: Session,
    entity_type: EntityType | str,
    policy: DuplicatePolicy | str,
    *,
    fuzzy_threshold: int = 3,
) -> RecordUpserter:
    """Build the upserter for one job; employees get their name snapshot here."""
    entity_type = EntityType(entity_type)
    if entity_type is EntityType.EMPLOYEE:
        snapshot = load_employee_snapshot(db)
        logger.info(f"Loaded {len(snapshot)} employees for fuzzy duplicate checks")
        return EmployeeUpserter(db, policy, snapshot, threshold=fuzzy_threshold)
    return UPSERTERS[entity_type](db, policy)
