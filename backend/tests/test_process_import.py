import json
import logging

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from bulk_import.core.config import get_settings
from bulk_import.core.enums import DuplicatePolicy, EntityType, JobStatus
from bulk_import.db.base import utcnow
from bulk_import.db.models import Client, Employee, SupplierInvoice, Task
from bulk_import.services import job_store
from bulk_import.services.errors import FileRetrievalError
from bulk_import.storage import object_storage
from bulk_import.workers.tasks.process_import import (
    map_row,
    process_import_task,
    run_import_job,
)

EMPLOYEE_MAPPINGS = {"Prénom": "firstName", "Nom": "lastName", "Email": "professionalEmail"}
EMPLOYEE_HEADERS = ["Prénom", "Nom", "Email"]


def _count(db, model):
    return db.scalar(select(func.count()).select_from(model))


def _job(db, url, entity_type, mappings, on_duplicate=DuplicatePolicy.SKIP):
    return job_store.create_job(
        db,
        entity_type=entity_type,
        file_url=url,
        file_name="import.xlsx",
        mappings=mappings,
        on_duplicate=on_duplicate,
    )


def _reload(db, job_id):
    db.expire_all()
    return job_store.get_job(db, job_id)


def test_map_row_uses_column_labels():
    row = {"Nom": "Dupont", "Extra": "ignored"}

    assert map_row(row, {"Nom": "lastName", "Email": "professionalEmail"}) == {
        "lastName": "Dupont",
        "professionalEmail": None,
    }


def test_row_missing_required_field_is_reported_and_others_imported(db, stored_xlsx):
    url = stored_xlsx(
        [
            EMPLOYEE_HEADERS,
            ["Jean", "Dupont", "jean@example.com"],
            ["Marie", "Curie", None],
            ["Paul", "Martin", "paul@example.com"],
        ]
    )
    job = _job(db, url, EntityType.EMPLOYEE, EMPLOYEE_MAPPINGS)

    assert run_import_job(db, job.id) is JobStatus.DONE

    job = _reload(db, job.id)
    assert job.status == "done"
    assert job.total_rows == 3
    assert job.processed_rows == 3
    assert job.error_rows == 1
    assert job.errors == [
        {"row": 3, "field": "professionalEmail", "message": "professionalEmail is required"}
    ]
    assert job.meta["outcomes"] == {"created": 2}
    assert job.completed_at is not None
    assert _count(db, Employee) == 2


def test_duplicate_reference_under_skip_creates_one_record(db, stored_xlsx):
    url = stored_xlsx(
        [
            ["Ref", "Supplier", "Amount", "Date"],
            ["INV-1", "sup-1", 100, "2024-01-31"],
            ["INV-1", "sup-1", 250, "2024-02-29"],
        ]
    )
    mappings = {"Ref": "reference", "Supplier": "supplierId", "Amount": "amount", "Date": "date"}
    job = _job(db, url, EntityType.SUPPLIER_INVOICE, mappings)

    run_import_job(db, job.id)

    job = _reload(db, job.id)
    assert job.error_rows == 0
    assert job.meta["outcomes"] == {"created": 1, "skipped": 1}
    assert _count(db, SupplierInvoice) == 1
    assert db.scalar(select(SupplierInvoice.amount)) == 100


def test_similar_employee_name_fails_row_under_skip(db, stored_xlsx):
    db.add(Employee(first_name="Jean", last_name="Dupont", professional_email="jean@example.com"))
    db.commit()
    url = stored_xlsx([EMPLOYEE_HEADERS, ["Jean", "Dupond", "jd@other.com"]])
    job = _job(db, url, EntityType.EMPLOYEE, EMPLOYEE_MAPPINGS)

    run_import_job(db, job.id)

    job = _reload(db, job.id)
    assert job.status == "done"
    assert job.error_rows == 1
    assert job.errors[0]["row"] == 2
    assert job.errors[0]["message"].startswith("Potential duplicate")
    assert _count(db, Employee) == 1


def test_progress_is_checkpointed_and_published(db, stored_xlsx, fake_redis, monkeypatch):
    monkeypatch.setattr(get_settings(), "import_checkpoint_every", 2)
    checkpoints = []
    original_checkpoint = job_store.checkpoint

    def spy(session, job, progress):
        checkpoints.append((progress.processed_rows, progress.last_processed_row))
        original_checkpoint(session, job, progress)

    monkeypatch.setattr(job_store, "checkpoint", spy)
    url = stored_xlsx([["Nom"]] + [[f"Client {i}"] for i in range(5)])
    job = _job(db, url, EntityType.CLIENT, {"Nom": "name"})

    run_import_job(db, job.id)

    assert checkpoints == [(2, 3), (4, 5)]
    snapshot = json.loads(fake_redis.store[f"imports:progress:{job.id}"])
    assert snapshot["status"] == "done"
    assert snapshot["progress"] == 1.0
    assert snapshot["meta"]["processed"] == 5
    assert snapshot["meta"]["total"] == 5


def test_retry_resumes_after_last_checkpoint(db, stored_xlsx):
    url = stored_xlsx([["Nom"], ["A"], ["B"], ["C"], ["D"]])
    job = _job(db, url, EntityType.CLIENT, {"Nom": "name"})
    # a previous attempt got through sheet rows 2 and 3 before failing
    job.processed_rows = 2
    job.last_processed_row = 3
    job.attempts = 1
    job.meta = {"outcomes": {"created": 2}}
    db.commit()

    run_import_job(db, job.id)

    job = _reload(db, job.id)
    assert job.status == "done"
    assert job.attempts == 2
    assert job.processed_rows == 4
    assert job.last_processed_row == 5
    assert job.meta["outcomes"] == {"created": 4}
    assert sorted(db.scalars(select(Client.name))) == ["C", "D"]


def test_unreachable_file_on_non_final_attempt_requeues(db):
    job = _job(db, "file:///nonexistent/clients.xlsx", EntityType.CLIENT, {"Nom": "name"})

    with pytest.raises(FileRetrievalError):
        run_import_job(db, job.id, final_attempt=False)

    job = _reload(db, job.id)
    assert job.status == "pending"
    assert "Cannot download file" in job.error_message
    assert job.errors == []


def test_unreachable_file_on_final_attempt_fails_job(db, fake_redis):
    job = _job(db, "file:///nonexistent/clients.xlsx", EntityType.CLIENT, {"Nom": "name"})

    with pytest.raises(FileRetrievalError):
        run_import_job(db, job.id, final_attempt=True)

    job = _reload(db, job.id)
    assert job.status == "failed"
    assert len(job.errors) == 1
    assert job.errors[0]["row"] == 0
    assert job.errors[0]["message"].startswith("Cannot download file")
    assert json.loads(fake_redis.store[f"imports:progress:{job.id}"])["status"] == "failed"


def test_undecodable_workbook_fails_job(db):
    url = object_storage.store(b"not a workbook", "application/vnd.ms-excel", "legacy.xls")
    job = _job(db, url, EntityType.CLIENT, {"Nom": "name"})

    with pytest.raises(ValueError):
        run_import_job(db, job.id)

    job = _reload(db, job.id)
    assert job.status == "failed"
    assert job.errors[0]["message"].startswith("Unable to read workbook")


def test_header_only_workbook_completes_with_no_rows(db, stored_xlsx):
    job = _job(db, stored_xlsx([["Nom"]]), EntityType.CLIENT, {"Nom": "name"})

    assert run_import_job(db, job.id) is JobStatus.DONE

    job = _reload(db, job.id)
    assert job.total_rows == 0
    assert job.processed_rows == 0


def test_missing_job_is_ignored(db):
    assert run_import_job(db, "does-not-exist") is None


def test_finished_job_is_not_processed_again(db, stored_xlsx):
    url = stored_xlsx([["Nom"], ["Acme"]])
    job = _job(db, url, EntityType.CLIENT, {"Nom": "name"})
    run_import_job(db, job.id)

    assert run_import_job(db, job.id) is JobStatus.DONE
    assert _count(db, Client) == 1


def test_task_non_final_attempt_raises_for_retry(db):
    job = _job(db, "file:///nonexistent/clients.xlsx", EntityType.CLIENT, {"Nom": "name"})

    with pytest.raises(FileRetrievalError):
        process_import_task(job.id, max_attempts=2, backoff_seconds=0)

    assert _reload(db, job.id).status == "pending"


def test_task_single_attempt_fails_job(db):
    job = _job(db, "file:///nonexistent/clients.xlsx", EntityType.CLIENT, {"Nom": "name"})

    with pytest.raises(FileRetrievalError):
        process_import_task(job.id, max_attempts=1)

    assert _reload(db, job.id).status == "failed"


def test_task_returns_final_status(db, stored_xlsx):
    job = _job(db, stored_xlsx([["Nom"], ["Acme"]]), EntityType.CLIENT, {"Nom": "name"})

    assert process_import_task(job.id) == "done"


def test_rerun_under_skip_leaves_store_unchanged(db, stored_xlsx):
    url = stored_xlsx(
        [
            ["Nom", "SIRET"],
            ["Acme", "11111111100011"],
            ["Globex", "22222222200022"],
            ["Initech", "33333333300033"],
        ]
    )
    mappings = {"Nom": "name", "SIRET": "siret"}

    first = _job(db, url, EntityType.CLIENT, mappings)
    assert run_import_job(db, first.id) is JobStatus.DONE
    assert _count(db, Client) == 3

    second = _job(db, url, EntityType.CLIENT, mappings)
    assert run_import_job(db, second.id) is JobStatus.DONE

    assert _count(db, Client) == 3
    second = _reload(db, second.id)
    assert second.error_rows == 0
    assert second.meta["outcomes"] == {"skipped": 3}


def test_database_error_on_row_reports_short_message(db, stored_xlsx):
    db.add(Task(reference=f"TASK-{utcnow():%Y%m}-00002", title="Existing", project_id="p1"))
    db.commit()
    url = stored_xlsx([["Titre", "Projet"], ["Pose carrelage", "p1"]])

    job = _job(db, url, EntityType.TASK, {"Titre": "title", "Projet": "projectId"})
    assert run_import_job(db, job.id) is JobStatus.DONE

    job = _reload(db, job.id)
    assert job.error_rows == 1
    [error] = job.errors
    assert error["row"] == 2
    assert "UNIQUE constraint failed: tasks.reference" in error["message"]
    assert "INSERT" not in error["message"]
    assert _count(db, Task) == 1


def test_unrecorded_failure_names_recovery_script(db, monkeypatch, caplog):
    job = _job(db, "file:///nonexistent/clients.xlsx", EntityType.CLIENT, {"Nom": "name"})

    def broken_requeue(*args, **kwargs):
        raise SQLAlchemyError("database unavailable")

    monkeypatch.setattr(job_store, "requeue", broken_requeue)

    with caplog.at_level(logging.ERROR, logger="bulk_import.workers.tasks.process_import"):
        with pytest.raises(FileRetrievalError):
            run_import_job(db, job.id, final_attempt=False)

    assert any("release_stuck_jobs.py" in record.getMessage() for record in caplog.records)
    assert _reload(db, job.id).status == "processing"
