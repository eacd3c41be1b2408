"""Closed vocabularies shared by the API, the job records and the worker."""

from enum import Enum


class EntityType(str, Enum):
    CLIENT = "client"
    EMPLOYEE = "employee"
    SITE = "site"
    TASK = "task"
    SUPPLIER_INVOICE = "supplier-invoice"


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.DONE, JobStatus.FAILED)


class DuplicatePolicy(str, Enum):
    SKIP = "skip"
    UPDATE = "update"
