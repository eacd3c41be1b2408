"""Database models package."""
from bulk_import.db.models.client import Client
from bulk_import.db.models.employee import Employee
from bulk_import.db.models.import_job import ImportJob
from bulk_import.db.models.import_template import ImportTemplate
from bulk_import.db.models.site import Site
from bulk_import.db.models.supplier_invoice import SupplierInvoice
from bulk_import.db.models.task import Task

__all__ = [
    "Client",
    "Employee",
    "ImportJob",
    "ImportTemplate",
    "Site",
    "SupplierInvoice",
    "Task",
]
