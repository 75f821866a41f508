"""Schema-presence analysis route."""
from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from inclinefit.analysis.presence import analyse_messages
from inclinefit.config import Settings, get_settings
from inclinefit.fit.codec import FitDecodeError, decode_messages

router = APIRouter()


@router.post("/analyse")
async def analyse(
    file: UploadFile = File(...),
    settings: Settings = Depends(get_settings),
):
    """Return the field-presence report for an uploaded FIT file as JSON."""
    data = await file.read()
    try:
        messages = decode_messages(data)
    except FitDecodeError as exc:
        raise HTTPException(status_code=422, detail=f"{file.filename}: decode failed: {exc}")

    report = analyse_messages(messages, record_dump_count=settings.record_dump_count)
    return {"file": file.filename, **report.to_dict()}
