from __future__ import annotations

import logging
import os
import threading
import time
import uuid
from pathlib import Path

from dotenv import load_dotenv

# Load .env from backend directory so template sources etc. are available
load_dotenv(Path(__file__).resolve().parent / ".env")

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, Response
from starlette.middleware.base import BaseHTTPMiddleware

from models import (
    DialogFieldOut,
    DistributionConfirmOut,
    DistributionDialogOut,
    DistributionEdit,
    DistributionKind,
    F2ValueChange,
    FeeState,
    LineItem,
    PricingSummary,
    PrintRequest,
    QuotePreviewRequest,
    QuoteState,
)
from reporting.fragments import CompositionError
from reporting.quote_builder import build_quote_html
from reporting.template_source import TemplateFetchError, load_templates
from services.distribution import DialogStateError, DistributionDialog, Rejected
from services.quote_state import QuoteStateStore
from services.workflow import MappingFormReader, Notification, QuoteWorkflow

VERSION = (os.environ.get("GIT_COMMIT") or "").strip() or "unknown"

# Same logger as uvicorn so request and render lines interleave
_LOG = logging.getLogger("uvicorn.error")

app = FastAPI(title="Roller Blind Quote Backend", version="0.1.0")

# CORS: use ALLOWED_ORIGINS env (comma-separated) if set, else default
_origins_env = os.environ.get("ALLOWED_ORIGINS", "").strip()
if _origins_env:
    ALLOWED_ORIGINS = [o.strip() for o in _origins_env.split(",") if o.strip()]
else:
    ALLOWED_ORIGINS = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = str(uuid.uuid4())[:8]
        request.state.request_id = request_id
        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000
        _LOG.info(
            "request_id=%s method=%s path=%s status=%s duration_ms=%.0f",
            request_id,
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
        )
        response.headers["X-Request-Id"] = request_id
        return response


app.add_middleware(RequestLogMiddleware)

# One operator session per process; at most one open dialog per kind.
STORE = QuoteStateStore()
_DIALOGS: dict[str, tuple[DistributionKind, DistributionDialog]] = {}
_DIALOGS_LOCK = threading.Lock()


@app.on_event("startup")
def startup_log() -> None:
    port = os.environ.get("PORT", "8010")
    host = os.environ.get("HOST", "127.0.0.1")
    _LOG.info("Quote backend starting on http://%s:%s version=%s", host, port, VERSION)


@app.get("/health")
def health():
    return {"status": "ok", "version": VERSION}


async def _render_preview(req: QuotePreviewRequest) -> str:
    try:
        quote_template, details_template = await load_templates()
    except TemplateFetchError as e:
        _LOG.error("[quote] template load failed: %s", e)
        raise HTTPException(status_code=502, detail=str(e)) from e
    try:
        return build_quote_html(
            quote_template,
            details_template,
            req.summary,
            req.items,
            req.overrides,
            req.fees,
        )
    except CompositionError as e:
        _LOG.error("[quote] composition failed: %s", e)
        raise HTTPException(status_code=500, detail=str(e)) from e


@app.post("/quote/preview", response_class=HTMLResponse)
async def quote_preview(req: QuotePreviewRequest) -> HTMLResponse:
    """Return the printable quote as HTML for the posted pricing snapshot."""
    html_str = await _render_preview(req)
    return HTMLResponse(html_str)


def _pdf_filename(quote_id: str) -> str:
    safe = "".join(c if c.isalnum() or c in "-_" else "_" for c in quote_id.strip())
    return f"quote-{safe or 'draft'}.pdf"


@app.post("/quote/pdf")
async def quote_pdf(req: QuotePreviewRequest) -> Response:
    """Same body as /quote/preview; rendered to PDF through Playwright."""
    html_str = await _render_preview(req)
    try:
        from reporting.quote_builder import html_to_pdf

        pdf_bytes = html_to_pdf(html_str, quote_id=req.overrides.quote_id)
    except ImportError:
        raise HTTPException(
            status_code=503,
            detail="Playwright is required for PDF. Install: pip install playwright && playwright install chromium. Use POST /quote/preview for HTML.",
        )
    except Exception as e:
        _LOG.warning("[quote] PDF generation failed: %s", e)
        raise HTTPException(
            status_code=503,
            detail="PDF generation runtime unavailable. Use POST /quote/preview to get HTML instead.",
        ) from e
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{_pdf_filename(req.overrides.quote_id)}"'},
    )


# --- Quote state ---

@app.get("/quote/state", response_model=QuoteState)
def get_quote_state() -> QuoteState:
    return STORE.snapshot()


@app.put("/quote/state/items", response_model=QuoteState)
def put_quote_items(items: list[LineItem]) -> QuoteState:
    STORE.set_items(items)
    return STORE.snapshot()


@app.put("/quote/state/summary", response_model=QuoteState)
def put_quote_summary(summary: PricingSummary) -> QuoteState:
    STORE.set_summary(summary)
    return STORE.snapshot()


@app.put("/quote/state/remotes", response_model=QuoteState)
def put_drive_remote_count(count: int) -> QuoteState:
    STORE.set_drive_remote_count(count)
    return STORE.snapshot()


@app.post("/quote/state/fees/{fee_type}/toggle", response_model=FeeState)
def toggle_fee(fee_type: str) -> FeeState:
    try:
        return QuoteWorkflow(STORE).handle_toggle_fee_exclusion(fee_type)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


@app.post("/quote/state/f2", response_model=FeeState)
def change_f2_value(change: F2ValueChange) -> FeeState:
    notes: list[Notification] = []
    workflow = QuoteWorkflow(STORE, notifier=notes.append)
    if not workflow.handle_f2_value_change(change.id, change.value):
        detail = notes[0].message if notes else f"Unknown F2 field: {change.id}"
        raise HTTPException(status_code=400, detail=detail)
    return STORE.snapshot().fees


@app.post("/quote/print", response_class=HTMLResponse)
async def print_quote(req: PrintRequest) -> HTMLResponse:
    """Render the printable quote from the stored state and the posted F3 form fields."""
    notes: list[Notification] = []
    workflow = QuoteWorkflow(
        STORE,
        form_reader=MappingFormReader(req.fields),
        template_loader=load_templates,
        notifier=notes.append,
    )
    html_str = await workflow.handle_printable_quote_request()
    if html_str is None:
        detail = notes[0].message if notes else "Failed to generate quote preview."
        raise HTTPException(status_code=502, detail=detail)
    return HTMLResponse(html_str)


# --- Distribution dialogs ---

def _dialog_out(dialog_id: str, kind: DistributionKind, dialog: DistributionDialog) -> DistributionDialogOut:
    request = dialog.request()
    return DistributionDialogOut(
        dialog_id=dialog_id,
        kind=kind,
        message=request.message,
        total=dialog.total,
        state=dialog.state.value,
        fields=[DialogFieldOut(id=f.id, label=f.label, value=f.value) for f in request.fields],
    )


def _get_dialog(dialog_id: str) -> tuple[DistributionKind, DistributionDialog]:
    with _DIALOGS_LOCK:
        entry = _DIALOGS.get(dialog_id)
    if entry is None:
        raise HTTPException(status_code=404, detail="Dialog not found")
    return entry


def _register_dialog(kind: DistributionKind, dialog: DistributionDialog) -> str:
    """Keep at most one open dialog per kind; a new one cancels and replaces the old."""
    dialog_id = str(uuid.uuid4())
    with _DIALOGS_LOCK:
        stale = [key for key, (k, _) in _DIALOGS.items() if k == kind]
        for key in stale:
            _, old = _DIALOGS.pop(key)
            try:
                old.cancel()
            except DialogStateError:
                pass  # confirmed or cancelled meanwhile
            _LOG.info("[distribution] replaced %s dialog %s", kind, key)
        _DIALOGS[dialog_id] = (kind, dialog)
    return dialog_id


def _drop_dialog(dialog_id: str) -> None:
    with _DIALOGS_LOCK:
        _DIALOGS.pop(dialog_id, None)


@app.post("/distributions/{kind}", response_model=DistributionDialogOut)
def open_distribution(kind: DistributionKind) -> DistributionDialogOut:
    workflow = QuoteWorkflow(STORE)
    dialog = workflow.handle_remote_distribution() if kind == "remote" else workflow.handle_dual_distribution()
    dialog.open()
    dialog_id = _register_dialog(kind, dialog)
    return _dialog_out(dialog_id, kind, dialog)


@app.post("/distributions/{dialog_id}/edit", response_model=DistributionDialogOut)
def edit_distribution(dialog_id: str, edit: DistributionEdit) -> DistributionDialogOut:
    kind, dialog = _get_dialog(dialog_id)
    try:
        dialog.edit(edit.field, edit.value)
    except KeyError:
        raise HTTPException(status_code=400, detail=f"Unknown field: {edit.field}")
    except DialogStateError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    return _dialog_out(dialog_id, kind, dialog)


@app.post("/distributions/{dialog_id}/confirm", response_model=DistributionConfirmOut)
def confirm_distribution(dialog_id: str) -> DistributionConfirmOut:
    _, dialog = _get_dialog(dialog_id)
    try:
        outcome = dialog.confirm()
    except DialogStateError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    if isinstance(outcome, Rejected):
        raise HTTPException(status_code=422, detail=outcome.message)
    _drop_dialog(dialog_id)
    return DistributionConfirmOut(dialog_id=dialog_id, state=dialog.state.value, committed=outcome.values)


@app.post("/distributions/{dialog_id}/cancel")
def cancel_distribution(dialog_id: str):
    _, dialog = _get_dialog(dialog_id)
    dialog.cancel()
    _drop_dialog(dialog_id)
    return {"dialog_id": dialog_id, "state": dialog.state.value}
