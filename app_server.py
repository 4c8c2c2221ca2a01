import json
import logging
from typing import Any

# load_dotenv() MUST be called before importing config so that CERT_* overrides
# from .env are in os.environ when config.py reads them at import time.
from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel
from pydantic import ValidationError as ModelValidationError

from batch import BatchGenerator, CancelToken, recommended_batch_size
from certificate import compose_certificate, single_certificate_filename
from config import CORS_ORIGINS, LOG_LEVEL
from errors import CancellationError, PackagingError, RenderError, ValidationError
from models import EventInfo, OrgInfo, Participant, Progress, TemplateSpec
from participants import parse_participants_csv

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="Certificate Generation API")

# ── CORS ──────────────────────────────────────────────────────────────────────
# Allow the placement UI dev server to reach the API during development.
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={
            "message": "Request validation failed.",
            "detail": exc.errors(),
        },
    )


@app.exception_handler(ValidationError)
async def input_validation_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={"message": "Input validation failed.", "errors": exc.errors},
    )


@app.exception_handler(PackagingError)
async def packaging_error_handler(request: Request, exc: PackagingError) -> JSONResponse:
    logger.error("Packaging failed: %s", exc)
    return JSONResponse(status_code=500, content={"message": f"Failed to create certificate archive: {exc}"})


class ParsedParticipants(BaseModel):
    participants: list[Participant]
    errors: list[str]


def _load_json(label: str, raw: str | None) -> Any:
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise HTTPException(status_code=422, detail=f"Invalid JSON in {label}: {exc}") from exc


def _parse_model(model: type[BaseModel], label: str, payload: Any):
    try:
        return model.model_validate(payload)
    except ModelValidationError as exc:
        raise HTTPException(
            status_code=422,
            detail={"message": f"Invalid {label}.", "errors": json.loads(exc.json())},
        ) from exc


def _build_template(template_json: str, backdrop: bytes | None, font_data: bytes | None) -> TemplateSpec:
    payload = _load_json("template_json", template_json) or {}
    if not isinstance(payload, dict):
        raise HTTPException(status_code=422, detail="template_json must be a JSON object.")
    if backdrop is not None:
        payload["backdrop_image"] = backdrop
    if font_data is not None:
        payload["font_data"] = font_data
    return _parse_model(TemplateSpec, "template", payload)


def _attachment(filename: str) -> dict[str, str]:
    return {"Content-Disposition": f'attachment; filename="{filename}"'}


@app.get("/api/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/api/batch-size")
def batch_size(count: int) -> dict[str, int]:
    if count < 0:
        raise HTTPException(status_code=400, detail="count must not be negative.")
    return {"count": count, "batch_size": recommended_batch_size(count)}


@app.post("/api/participants/parse")
def parse_participants(csv_file: UploadFile = File(...)) -> ParsedParticipants:
    text = csv_file.file.read().decode("utf-8-sig", errors="replace")
    imported = parse_participants_csv(text)
    return ParsedParticipants(participants=imported.participants, errors=imported.errors)


@app.post("/api/certificates/generate")
def generate_certificate(
    participant_json: str = Form(...),
    event_json: str = Form(...),
    org_json: str = Form(...),
    template_json: str = Form(...),
    backdrop: UploadFile | None = File(None),
    font_file: UploadFile | None = File(None),
) -> Response:
    participant = _parse_model(Participant, "participant", _load_json("participant_json", participant_json))
    event = _parse_model(EventInfo, "event", _load_json("event_json", event_json))
    org = _parse_model(OrgInfo, "organisation", _load_json("org_json", org_json))
    template = _build_template(
        template_json,
        backdrop.file.read() if backdrop is not None else None,
        font_file.file.read() if font_file is not None else None,
    )
    if not participant.name.strip():
        raise ValidationError("Participant name is required")

    try:
        pdf_bytes = compose_certificate(participant, event, org, template)
    except RenderError as exc:
        raise HTTPException(status_code=500, detail=f"Failed to generate certificate: {exc}") from exc

    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers=_attachment(single_certificate_filename(participant.name)),
    )


@app.post("/api/certificates/bulk")
async def generate_bulk(
    request: Request,
    event_json: str = Form(...),
    org_json: str = Form(...),
    template_json: str = Form(...),
    participants_json: str | None = Form(None),
    csv_file: UploadFile | None = File(None),
    batch_size: int | None = Form(None),
    backdrop: UploadFile | None = File(None),
    font_file: UploadFile | None = File(None),
) -> Response:
    if csv_file is not None:
        imported = parse_participants_csv((await csv_file.read()).decode("utf-8-sig", errors="replace"))
        if imported.errors:
            raise ValidationError(imported.errors)
        participants = imported.participants
    elif participants_json is not None:
        rows = _load_json("participants_json", participants_json)
        if not isinstance(rows, list):
            raise HTTPException(status_code=422, detail="participants_json must be a JSON array.")
        participants = [_parse_model(Participant, "participant", row) for row in rows]
    else:
        raise HTTPException(status_code=400, detail="Provide participants_json or csv_file.")

    event = _parse_model(EventInfo, "event", _load_json("event_json", event_json))
    org = _parse_model(OrgInfo, "organisation", _load_json("org_json", org_json))
    template = _build_template(
        template_json,
        await backdrop.read() if backdrop is not None else None,
        await font_file.read() if font_file is not None else None,
    )

    token = CancelToken()

    async def stop_when_client_leaves(progress: Progress) -> None:
        if await request.is_disconnected():
            logger.info("Client disconnected at %d/%d, cancelling", progress.completed, progress.total)
            token.cancel()

    try:
        archive = await BatchGenerator().run(
            participants,
            event,
            org,
            template,
            batch_size=batch_size,
            on_progress=stop_when_client_leaves,
            cancel_token=token,
        )
    except CancellationError:
        return JSONResponse(status_code=499, content={"message": "Certificate generation was cancelled."})

    return Response(
        content=archive.data,
        media_type="application/zip",
        headers=_attachment(archive.filename),
    )
