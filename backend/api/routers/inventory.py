"""
Inventory API router.

Reads go straight to the watched file or to the watcher's latest snapshot.
Writes replace the watched file and return immediately; propagation to
connected clients is left to the change watcher.
"""
import logging
import random
from pathlib import Path

from fastapi import APIRouter, File, HTTPException, Request, UploadFile
from fastapi.responses import Response

from backend.api.models import (
    InventoryRecordsResponse, MessageResponse, SimulatedSyncResponse
)
from backend.core.normalize import FIELD_ALIASES, find_key
from backend.core.source import CSV_EXTENSIONS, EXCEL_EXTENSIONS, SourceReader

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Inventory"])

TEMPLATE_FILENAME = "inventory_template.xlsx"

MEDIA_TYPES = {
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ".xlsm": "application/vnd.ms-excel.sheet.macroEnabled.12",
    ".csv": "text/csv",
}


def _reader(request: Request) -> SourceReader:
    reader = getattr(request.app.state, "reader", None)
    if reader is None:
        raise HTTPException(status_code=503, detail="Inventory source not initialized")
    return reader


@router.get("/inventory")
def get_inventory(request: Request):
    """Current rows of the watched file, decoded but not normalized."""
    return _reader(request).read_all()


@router.get("/inventory/records", response_model=InventoryRecordsResponse)
def get_inventory_records(request: Request):
    """Normalized records from the most recent published snapshot."""
    watcher = getattr(request.app.state, "watcher", None)
    snapshot = watcher.snapshot if watcher is not None else None
    if snapshot is None:
        return {"version": None, "count": 0, "records": []}
    return {
        "version": snapshot.version,
        "count": len(snapshot.records),
        "records": [record.to_dict() for record in snapshot.records],
    }


@router.get("/download-template")
def download_template(request: Request):
    """Download the watched file as-is for offline editing."""
    reader = _reader(request)
    try:
        content = reader.read_bytes()
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail="Template file not found")

    suffix = reader.path.suffix.lower()
    filename = TEMPLATE_FILENAME if suffix in EXCEL_EXTENSIONS else f"inventory_template{suffix}"
    return Response(
        content=content,
        media_type=MEDIA_TYPES.get(suffix, "application/octet-stream"),
        headers={"Content-Disposition": f"attachment; filename=\"{filename}\""},
    )


@router.post("/inventory/upload", response_model=MessageResponse)
async def upload_inventory(request: Request, file: UploadFile = File(...)):
    """Replace the watched file with an uploaded workbook."""
    reader = _reader(request)

    ext = Path(file.filename or "").suffix.lower()
    allowed = CSV_EXTENSIONS if reader.is_csv else EXCEL_EXTENSIONS
    if ext not in allowed:
        raise HTTPException(
            status_code=400,
            detail=f"File type '{ext or 'unknown'}' not allowed. Allowed: {', '.join(sorted(allowed))}"
        )

    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail="No file uploaded")

    try:
        reader.replace(content)
    except OSError as e:
        logger.error(f"[Upload] Failed to store {file.filename}: {e}")
        raise HTTPException(status_code=500, detail="Failed to store uploaded file")

    logger.info(f"[Upload] Received new inventory file: {file.filename}")
    return {"message": "File uploaded successfully. Syncing..."}


@router.post("/test-sync", response_model=SimulatedSyncResponse)
def simulate_change(request: Request):
    """Give the first row a random quantity and write the file back."""
    reader = _reader(request)
    rows = reader.read_all()
    if not rows:
        raise HTTPException(status_code=400, detail="No data in Excel to update")

    first = dict(rows[0])
    qty_key = find_key(first, FIELD_ALIASES["quantity"]) or "quantity"
    old_qty = first.get(qty_key)
    first[qty_key] = random.randrange(500)
    rows[0] = first

    try:
        reader.write_rows(rows)
    except Exception as e:
        logger.error(f"Test sync failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to update Excel file")

    logger.info(f"Simulated update: {first.get('name', '?')} quantity changed from {old_qty} to {first[qty_key]}")
    return {"message": "Excel file updated successfully", "newItem": first}


@router.post("/inventory/update", status_code=501, response_model=MessageResponse)
def update_inventory():
    """Manual write-back is not part of the sync pipeline."""
    raise HTTPException(status_code=501, detail="Not implemented: Manual write to Excel via API")
