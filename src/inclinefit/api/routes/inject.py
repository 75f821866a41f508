"""Treadmill → outdoor injection route."""
import logging
import re
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import Response

from inclinefit.config import Settings, get_settings
from inclinefit.fit.codec import FitDecodeError, FitEncodeError, decode_messages, encode_messages
from inclinefit.synthesis.rewriter import inject_messages
from inclinefit.synthesis.track import SynthesisParameters

logger = logging.getLogger(__name__)

router = APIRouter()

FIT_MEDIA_TYPE = "application/octet-stream"


def download_name(original: Optional[str], grade: float, requested: Optional[str] = None) -> str:
    """`<base>_injected_grade_<pct>.fit`, or the caller's name when given."""
    if requested and requested.strip():
        return requested
    base = re.sub(r"\.fit$", "", original or "", flags=re.IGNORECASE) or "activity"
    return f"{base}_injected_grade_{int(grade * 100)}.fit"


@router.post("/inject")
async def inject(
    file: UploadFile = File(...),
    lat: Optional[float] = Form(None),
    lon: Optional[float] = Form(None),
    alt: Optional[float] = Form(None),
    bearing: Optional[float] = Form(None),
    virtual: bool = Form(False),
    grade: Optional[float] = Form(None),
    name: Optional[str] = Form(None),
    settings: Settings = Depends(get_settings),
):
    """
    Upload a treadmill FIT file, get back the same activity with a synthetic
    track. Unset form fields fall back to Settings.
    """
    try:
        params = SynthesisParameters(
            start_lat=settings.default_lat if lat is None else lat,
            start_lon=settings.default_lon if lon is None else lon,
            start_altitude=settings.default_altitude if alt is None else alt,
            bearing=settings.default_bearing if bearing is None else bearing,
            grade=settings.target_grade if grade is None else grade,
            virtual=virtual,
            altitude_noise=settings.altitude_noise,
            noise_seed=settings.noise_seed,
        )
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    data = await file.read()
    try:
        messages = decode_messages(data)
    except FitDecodeError as exc:
        raise HTTPException(status_code=422, detail=f"{file.filename}: decode failed: {exc}")

    result = inject_messages(
        messages,
        params,
        duplicate_policy=settings.duplicate_knot_policy,
        clamp_monotonic=settings.clamp_monotonic_distance,
    )
    try:
        encoded = encode_messages(result.messages)
    except FitEncodeError as exc:
        logger.error("Encode failed for %s: %s", file.filename, exc)
        raise HTTPException(status_code=500, detail=f"{file.filename}: encode failed: {exc}")

    filename = download_name(file.filename, params.grade, name)
    return Response(
        content=encoded.data,
        media_type=FIT_MEDIA_TYPE,
        headers={
            "Content-Disposition": f'attachment; filename="{filename}"',
            "X-Records-Processed": str(result.samples_processed),
            "X-Messages-Written": str(encoded.written),
            "X-Messages-Skipped": str(len(encoded.failures)),
        },
    )
