import math
from typing import Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from fastapi.responses import Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from wellness_tracker import __version__, constants
from wellness_tracker.db.cleanup_duplicates import cleanup_duplicates
from wellness_tracker.db.import_upload import UploadImporter
from wellness_tracker.exceptions import AuthenticationFailed, EventNotFound, RecordNotFound
from wellness_tracker.file_io import XLSX_MEDIA_TYPE, build_export, build_template, load_upload
from wellness_tracker.managers import DbManager
from wellness_tracker.models import EntityKind
from wellness_tracker.services import RecordService
from wellness_tracker.webapp.schemas import (
    AttendanceIn,
    EvaluationIn,
    EventIn,
    EventUpdate,
    RegistrationIn,
)

DB_PATH = constants.DB_PATH

bearer_scheme = HTTPBearer(auto_error=False)


def require_admin(credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)) -> dict:
    """Accept the request only when the bearer token belongs to an admin."""
    if credentials is None or not credentials.credentials:
        raise AuthenticationFailed()
    with DbManager(DB_PATH) as db:
        admin = db.get_admin_by_token(credentials.credentials)
    if admin is None:
        raise AuthenticationFailed("Invalid or unknown token")
    return admin


def _pagination(total: int, page: int, limit: int) -> dict:
    return {"total": total, "page": page, "limit": limit, "totalPages": math.ceil(total / limit) if limit else 0}


def _attachment(content: bytes, filename: str, media_type: str) -> Response:
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


api = APIRouter(prefix="/api", tags=["api"])
admin_api = APIRouter(prefix="/api", tags=["admin"], dependencies=[Depends(require_admin)])


@api.get("/health")
def health():
    return {"status": "ok"}


@api.get("/version")
def version():
    return {"version": __version__}


# -----------------------
# Events
# -----------------------

@admin_api.get("/events")
def list_events(
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(constants.DEFAULT_PAGE_SIZE, ge=1, le=constants.MAX_PAGE_SIZE),
):
    with DbManager(DB_PATH) as db:
        events, total = db.list_events(search=search, page=page, limit=limit)
    return {"events": events, "pagination": _pagination(total, page, limit)}


@admin_api.get("/events/{event_id}")
def get_event(event_id: int):
    with DbManager(DB_PATH) as db:
        event = db.get_event(event_id)
    if event is None:
        raise EventNotFound(event_id)
    return event


@admin_api.post("/events", status_code=status.HTTP_201_CREATED)
def create_event(payload: EventIn):
    with DbManager(DB_PATH) as db:
        return RecordService(db).create_event(payload.model_dump())


@admin_api.put("/events/{event_id}")
def update_event(event_id: int, payload: EventUpdate):
    with DbManager(DB_PATH) as db:
        return RecordService(db).update_event(event_id, payload.model_dump(exclude_unset=True))


@admin_api.delete("/events/{event_id}")
def delete_event(event_id: int):
    with DbManager(DB_PATH) as db:
        removed = RecordService(db).delete_event(event_id)
    return {"message": f"Event {event_id} deleted", "removed": removed}


# -----------------------
# Registrations / attendance / evaluations
# -----------------------

def add_record_routes(router: APIRouter, kind: EntityKind, schema) -> None:
    """Register list/get/create/update/delete/upload/template/export for one record kind."""
    base = f"/{kind.table}"

    @router.get(base, name=f"list_{kind.table}")
    def list_records(
        event_id: Optional[int] = None,
        search: Optional[str] = None,
        page: int = Query(1, ge=1),
        limit: int = Query(constants.DEFAULT_PAGE_SIZE, ge=1, le=constants.MAX_PAGE_SIZE),
        sort: str = "id",
        order: str = "DESC",
    ):
        with DbManager(DB_PATH) as db:
            rows, total = db.list_records(
                kind, event_id=event_id, search=search, page=page, limit=limit, sort=sort, order=order
            )
        return {kind.table: rows, "pagination": _pagination(total, page, limit)}

    # Fixed paths go before /{record_id}
    @router.get(f"{base}/template", name=f"{kind.label}_template")
    def download_template():
        with DbManager(DB_PATH) as db:
            events = db.all_events()
        content, filename, media_type = build_template(kind, events)
        return _attachment(content, filename, media_type)

    @router.get(f"{base}/export", name=f"export_{kind.table}")
    def export_records(event_id: Optional[int] = None, search: Optional[str] = None):
        with DbManager(DB_PATH) as db:
            content = build_export(kind, db.iter_records(kind, event_id=event_id, search=search))
        return _attachment(content, f"{kind.table}_export.xlsx", XLSX_MEDIA_TYPE)

    @router.post(f"{base}/upload", name=f"upload_{kind.table}")
    def upload_records(file: UploadFile = File(...)):
        rows = load_upload(file.filename, file.file.read())
        with DbManager(DB_PATH) as db:
            result = UploadImporter(db, kind).import_rows(rows)
        return result.to_response()

    @router.get(f"{base}/{{record_id}}", name=f"get_{kind.label}")
    def get_record(record_id: int):
        with DbManager(DB_PATH) as db:
            record = db.get_record(kind, record_id)
        if record is None:
            raise RecordNotFound(kind.label, record_id)
        return record

    @router.post(base, status_code=status.HTTP_201_CREATED, name=f"create_{kind.label}")
    def create_record(payload: schema):
        with DbManager(DB_PATH) as db:
            return RecordService(db).create(kind, payload.model_dump(exclude_none=True))

    @router.put(f"{base}/{{record_id}}", name=f"update_{kind.label}")
    def update_record(record_id: int, payload: schema):
        with DbManager(DB_PATH) as db:
            return RecordService(db).update(kind, record_id, payload.model_dump(exclude_unset=True))

    @router.delete(f"{base}/{{record_id}}", name=f"delete_{kind.label}")
    def delete_record(record_id: int):
        with DbManager(DB_PATH) as db:
            RecordService(db).delete(kind, record_id)
        return {"message": f"{kind.label.capitalize()} {record_id} deleted"}


add_record_routes(admin_api, EntityKind.REGISTRATION, RegistrationIn)
add_record_routes(admin_api, EntityKind.ATTENDANCE, AttendanceIn)
add_record_routes(admin_api, EntityKind.EVALUATION, EvaluationIn)


# -----------------------
# Employee directory
# -----------------------

@admin_api.get("/employees/departments")
def list_departments():
    with DbManager(DB_PATH) as db:
        return {"departments": db.list_departments()}


@admin_api.get("/employees/by-number/{employee_no}")
def get_employee(employee_no: str):
    with DbManager(DB_PATH) as db:
        employee = db.get_employee(employee_no.strip())
    if employee is None:
        raise RecordNotFound("employee", employee_no)
    return {key: employee[key] for key in ("employee_no", "employee_name", "department")}


# -----------------------
# Maintenance
# -----------------------

@admin_api.post("/maintenance/cleanup-duplicates")
def run_cleanup_duplicates(dry_run: bool = False):
    with DbManager(DB_PATH) as db:
        result = cleanup_duplicates(db, dry_run=dry_run)
    return result.to_dict()
