"""
Bulk import API routes.

Step-by-step CSV import of transactions:
1. POST /sessions                     - start a session (loads reference data)
2. POST /sessions/{id}/source|upload  - paste or upload the CSV
3. POST /sessions/{id}/mapping/auto   - map columns (or PUT /mapping)
4. POST /sessions/{id}/validate       - lock mapping, build and check rows
5. PATCH /sessions/{id}/rows/{index}  - fix rows
6. POST /sessions/{id}/commit         - write checked, valid rows
"""

from fastapi import APIRouter, UploadFile, File, status
from fastapi.responses import JSONResponse, PlainTextResponse
import structlog

from config import settings
from models.bulk_import import (
    ImportRow,
    ImportSummary,
    CreateSessionRequest,
    SourceRequest,
    HeadersRequest,
    MappingRequest,
    RowUpdateRequest,
    ImportRowResponse,
    ImportSummaryResponse,
    ImportSessionResponse,
    CancelResponse,
)
from parsers.header_mapping import generate_sample_csv
from services.import_session_service import ImportSession
from services.reference_service import get_reference_service
from services import import_session_cache
from exceptions import (
    AppError,
    FileDecodeError,
    FileTooLargeError,
    ImportSessionNotFoundError,
    InvalidFileTypeError,
)

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/bulk-import", tags=["Bulk Import"])

CSV_CONTENT_TYPES = {"text/csv", "application/csv", "application/vnd.ms-excel"}


# ===================
# EXCEPTION HANDLER
# ===================

def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )


# ===================
# HELPERS
# ===================

def _get_session(session_id: str) -> ImportSession:
    session = import_session_cache.retrieve_session(session_id)
    if session is None:
        raise ImportSessionNotFoundError(session_id)
    return session


def _row_response(row: ImportRow) -> ImportRowResponse:
    return ImportRowResponse(
        index=row.index,
        type=row.type,
        title=row.title,
        amount=row.amount,
        transaction_date=row.transaction_date,
        account=row.account,
        category=row.category,
        from_account=row.from_account,
        to_account=row.to_account,
        frequency=row.frequency,
        notes=row.notes,
        goal=row.goal,
        goal_amount=row.goal_amount,
        raw_data=dict(row.raw_data),
        errors=[{"field": e.field, "message": e.message} for e in row.errors],
        warnings=[{"field": w.field, "message": w.message} for w in row.warnings],
        is_valid=row.is_valid,
        is_checked=row.is_checked,
    )


def _summary_response(summary: ImportSummary) -> ImportSummaryResponse:
    return ImportSummaryResponse(
        total_rows=summary.total_rows,
        successful_imports=summary.successful_imports,
        failed_imports=summary.failed_imports,
        errors=[{"row_index": f.row_index, "message": f.message} for f in summary.errors],
        cancelled=summary.cancelled,
        skipped_rows=summary.skipped_rows,
        success=summary.success,
        message=summary.message,
    )


def _session_response(session: ImportSession) -> ImportSessionResponse:
    state = session.state
    rows = state.rows
    return ImportSessionResponse(
        session_id=session.session_id,
        step=session.step,
        file_name=state.file_name,
        delimiter=state.delimiter,
        has_headers=state.has_headers,
        total_raw_rows=len(state.raw_rows),
        headers=state.headers,
        preview_rows=state.data_rows[:settings.import_preview_rows],
        column_mapping=dict(state.column_mapping),
        mapping_locked=state.mapping_locked,
        missing_required_fields=session.missing_required_fields,
        rows=[_row_response(r) for r in rows],
        valid_rows=sum(1 for r in rows if r.is_valid),
        invalid_rows=sum(1 for r in rows if not r.is_valid),
        checked_rows=sum(1 for r in rows if r.is_checked and r.is_valid),
        is_loading=state.is_loading,
        error=state.error,
        summary=_summary_response(session.summary) if session.summary else None,
    )


def _decode_upload(content: bytes, filename: str) -> str:
    """UTF-8 text with an optional byte-order mark."""
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise FileDecodeError(filename)


# ===================
# TEMPLATE
# ===================

@router.get("/template", response_class=PlainTextResponse)
async def download_template():
    """Sample CSV with one income, two expenses and a transfer."""
    return PlainTextResponse(
        content=generate_sample_csv(),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="transactions_template.csv"'},
    )


# ===================
# SESSION ROUTES
# ===================

@router.post(
    "/sessions",
    response_model=ImportSessionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_session(data: CreateSessionRequest):
    """
    Start an import session.

    Loads the user's accounts, categories and goals once; the session
    matches every row against this snapshot.
    """
    try:
        snapshot = get_reference_service().load_snapshot(data.user_id)
        session_id = import_session_cache.new_session_id()
        session = ImportSession(session_id, data.user_id, snapshot)
        import_session_cache.store_session(session_id, session)

        logger.info("import_session_created", session_id=session_id, user_id=data.user_id)
        return _session_response(session)

    except Exception as e:
        return handle_error(e)


@router.get("/sessions/{session_id}", response_model=ImportSessionResponse)
async def get_session(session_id: str):
    """Current step and state of a session."""
    try:
        return _session_response(_get_session(session_id))
    except Exception as e:
        return handle_error(e)


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session(session_id: str):
    """Discard a session. A running commit is cancelled first."""
    try:
        session = _get_session(session_id)
        session.cancel()
        import_session_cache.delete_session(session_id)
        logger.info("import_session_deleted", session_id=session_id)
        return None
    except Exception as e:
        return handle_error(e)


# ===================
# SOURCE ROUTES
# ===================

@router.post("/sessions/{session_id}/source", response_model=ImportSessionResponse)
async def load_source(session_id: str, data: SourceRequest):
    """Load pasted CSV text."""
    try:
        session = _get_session(session_id)
        session.load_source(data.csv_text, data.file_name)
        return _session_response(session)
    except Exception as e:
        return handle_error(e)


@router.post("/sessions/{session_id}/upload", response_model=ImportSessionResponse)
async def upload_csv(
    session_id: str,
    file: UploadFile = File(..., description="CSV file (max 5MB)"),
):
    """
    Load a CSV file.

    Raises:
        422: Not a CSV, too large, not UTF-8, empty or too many rows
    """
    try:
        session = _get_session(session_id)
        filename = file.filename or ""

        logger.info(
            "csv_upload_started",
            session_id=session_id,
            filename=filename,
            content_type=file.content_type,
        )

        if not filename.lower().endswith(".csv") and file.content_type not in CSV_CONTENT_TYPES:
            raise InvalidFileTypeError(filename, file.content_type)

        content = await file.read()
        if len(content) > settings.import_max_file_bytes:
            raise FileTooLargeError(len(content), settings.import_max_file_bytes)

        session.load_source(_decode_upload(content, filename), filename)
        return _session_response(session)

    except Exception as e:
        return handle_error(e)


@router.put("/sessions/{session_id}/headers", response_model=ImportSessionResponse)
async def set_headers(session_id: str, data: HeadersRequest):
    """Override header-row detection."""
    try:
        session = _get_session(session_id)
        session.set_has_headers(data.has_headers)
        return _session_response(session)
    except Exception as e:
        return handle_error(e)


# ===================
# MAPPING ROUTES
# ===================

@router.post("/sessions/{session_id}/mapping/auto", response_model=ImportSessionResponse)
async def auto_map_columns(session_id: str):
    """Map columns from their header names."""
    try:
        session = _get_session(session_id)
        session.auto_detect_mapping()
        return _session_response(session)
    except Exception as e:
        return handle_error(e)


@router.put("/sessions/{session_id}/mapping", response_model=ImportSessionResponse)
async def set_mapping(session_id: str, data: MappingRequest):
    """Replace the column mapping."""
    try:
        session = _get_session(session_id)
        session.set_column_mapping(data.mapping)
        return _session_response(session)
    except Exception as e:
        return handle_error(e)


@router.post("/sessions/{session_id}/validate", response_model=ImportSessionResponse)
async def validate_rows(session_id: str):
    """Lock the mapping and build the reviewable rows."""
    try:
        session = _get_session(session_id)
        session.confirm_mapping()
        return _session_response(session)
    except Exception as e:
        return handle_error(e)


# ===================
# ROW ROUTES
# ===================

@router.patch("/sessions/{session_id}/rows/{row_index}", response_model=ImportRowResponse)
async def update_row(session_id: str, row_index: int, data: RowUpdateRequest):
    """Correct fields of one row; it is normalized and validated again."""
    try:
        session = _get_session(session_id)
        row = session.update_row(row_index, data.fields, data.is_checked)
        return _row_response(row)
    except Exception as e:
        return handle_error(e)


@router.post("/sessions/{session_id}/rows/{row_index}/toggle", response_model=ImportRowResponse)
async def toggle_row(session_id: str, row_index: int):
    """Include or exclude a row from the commit."""
    try:
        session = _get_session(session_id)
        return _row_response(session.toggle_row_checked(row_index))
    except Exception as e:
        return handle_error(e)


# ===================
# NAVIGATION / COMMIT
# ===================

@router.post("/sessions/{session_id}/back", response_model=ImportSessionResponse)
async def go_back(session_id: str):
    """Return to the previous step."""
    try:
        session = _get_session(session_id)
        session.back()
        return _session_response(session)
    except Exception as e:
        return handle_error(e)


@router.post("/sessions/{session_id}/reset", response_model=ImportSessionResponse)
async def reset_session(session_id: str):
    """Start over from the source step, keeping the reference data."""
    try:
        session = _get_session(session_id)
        session.reset()
        return _session_response(session)
    except Exception as e:
        return handle_error(e)


@router.post("/sessions/{session_id}/commit", response_model=ImportSessionResponse)
def commit_import(session_id: str):
    """
    Write checked, valid rows.

    Runs in the threadpool so a cancel request can be served while
    rows are being written.
    """
    try:
        session = _get_session(session_id)
        session.commit()
        return _session_response(session)
    except Exception as e:
        return handle_error(e)


@router.post("/sessions/{session_id}/cancel", response_model=CancelResponse)
async def cancel_import(session_id: str):
    """Stop a running commit after the current row."""
    try:
        session = _get_session(session_id)
        return CancelResponse(
            session_id=session_id,
            cancel_requested=session.cancel(),
        )
    except Exception as e:
        return handle_error(e)
