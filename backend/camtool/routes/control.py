"""
Control endpoints for the camera tool UI.

HTTP adapter over the Session's UI-facing operations: toggle, reload,
debug level, editor edits, apply, save, file manager. The Session never
raises; outcomes are mapped to status codes here.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field

from camtool.editor.models import EditorBundle
from camtool.presets.files import SaveOutcome

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/control", tags=["control"])


# ============================================================================
# REQUEST / RESPONSE MODELS
# ============================================================================

class OperationResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    success: bool
    message: str


class StatusResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    enabled: bool
    dev_mode: int
    entity: Optional[str] = None
    appearance: Optional[str] = None
    presets: int
    recent: List[str] = []


class EnabledRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    enabled: bool


class DevModeRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    level: int = Field(ge=0, le=3)


class FieldEditRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    level: str
    field: str
    value: float


class RenameRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str


class SaveRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    overwrite: bool = False


class EditorTasksInfo(BaseModel):
    model_config = ConfigDict(extra="forbid")

    rename: bool
    validate_pending: bool
    apply: bool
    save: bool
    restore: bool


class EditorStateResponse(BaseModel):
    """Flux values plus the derived tasks of the mounted entity's bundle."""

    model_config = ConfigDict(extra="forbid")

    name: str
    appearance: str
    profile_id: str
    key: str
    file_name: str
    file_present: bool
    offsets: Dict[str, Dict[str, Optional[float]]]
    defaults: Dict[str, Dict[str, Optional[float]]]
    tasks: EditorTasksInfo


class SaveResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    outcome: str
    message: str


class PresetFileEntry(BaseModel):
    model_config = ConfigDict(extra="forbid")

    key: str
    first: Optional[datetime] = None
    last: Optional[datetime] = None
    total: int = 0


class PresetFileListResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    files: List[PresetFileEntry]


def _offsets(preset) -> Dict[str, Dict[str, Optional[float]]]:
    result = {}
    for level in ("Close", "Medium", "Far"):
        data = preset.level(level)
        result[level] = data.model_dump() if data is not None else {}
    return result


def _editor_state(bundle: EditorBundle) -> EditorStateResponse:
    tasks = bundle.tasks
    return EditorStateResponse(
        name=bundle.name,
        appearance=bundle.appearance,
        profile_id=bundle.profile_id,
        key=bundle.flux.key,
        file_name=bundle.flux.name,
        file_present=bundle.finale.is_present,
        offsets=_offsets(bundle.flux.preset),
        defaults=_offsets(bundle.nexus.preset),
        tasks=EditorTasksInfo(
            rename=tasks.rename,
            validate_pending=tasks.validate,
            apply=tasks.apply,
            save=tasks.save,
            restore=tasks.restore,
        ),
    )


def _open_bundle(request: Request) -> EditorBundle:
    bundle = request.app.state.session.open_editor()
    if bundle is None:
        raise HTTPException(status_code=404, detail="No editable entity mounted")
    return bundle


# ============================================================================
# GLOBAL OPERATIONS
# ============================================================================

@router.get("/status", response_model=StatusResponse)
async def get_status(request: Request):
    return StatusResponse(**request.app.state.session.status())


@router.post("/enabled", response_model=OperationResponse)
async def set_enabled(body: EnabledRequest, request: Request):
    """
    Enable or disable the tool.

    Enabling can fail when the default presets are incomplete; the
    response then reports success=False.
    """
    enabled = request.app.state.session.set_enabled(body.enabled)
    return OperationResponse(
        success=enabled == body.enabled,
        message="Enabled" if enabled else "Disabled",
    )


@router.post("/reload", response_model=OperationResponse)
async def reload_all(request: Request):
    session = request.app.state.session
    if not session.enabled:
        raise HTTPException(status_code=409, detail="Tool is disabled")

    if not session.reload_all():
        return OperationResponse(success=False, message="Reload failed; tool disabled")
    logger.info("Presets reloaded via control API")
    return OperationResponse(success=True, message=f"Reloaded {len(session.presets)} presets")


@router.post("/dev-mode", response_model=OperationResponse)
async def set_dev_mode(body: DevModeRequest, request: Request):
    if not request.app.state.session.set_dev_mode(body.level):
        raise HTTPException(status_code=500, detail="Failed to store debug level")
    return OperationResponse(success=True, message=f"Debug level set to {body.level}")


# ============================================================================
# EDITOR
# ============================================================================

@router.get("/editor", response_model=EditorStateResponse)
async def get_editor(request: Request):
    return _editor_state(_open_bundle(request))


@router.post("/editor/field", response_model=EditorStateResponse)
async def edit_field(body: FieldEditRequest, request: Request):
    session = request.app.state.session
    _open_bundle(request)

    if session.edit_field(body.level, body.field, body.value) is None:
        raise HTTPException(status_code=400, detail=f"Invalid field: {body.level}.{body.field}")
    return _editor_state(_open_bundle(request))


@router.post("/editor/rename", response_model=EditorStateResponse)
async def rename(body: RenameRequest, request: Request):
    session = request.app.state.session
    _open_bundle(request)

    if not session.rename(body.name):
        raise HTTPException(
            status_code=400,
            detail=f"Preset name must prefix the vehicle or appearance name: {body.name}",
        )
    return _editor_state(_open_bundle(request))


@router.post("/editor/apply", response_model=OperationResponse)
async def apply_edit(request: Request):
    session = request.app.state.session
    bundle = _open_bundle(request)

    applied = session.apply_edit()
    return OperationResponse(
        success=applied,
        message=f"Applied '{bundle.flux.key}'" if applied else f"Failed to apply '{bundle.flux.key}'",
    )


@router.post("/editor/save", response_model=SaveResponse)
async def save_edit(body: SaveRequest, request: Request):
    """
    Save the edited preset.

    Raises:
        409: Target file exists and overwrite was not confirmed
        500: Writing failed
    """
    session = request.app.state.session
    bundle = _open_bundle(request)

    outcome = session.save_edit(overwrite=body.overwrite)
    if outcome == SaveOutcome.EXISTS:
        raise HTTPException(status_code=409, detail=f"Preset file exists: {bundle.finale.name}")
    if outcome == SaveOutcome.FAILED:
        raise HTTPException(status_code=500, detail=f"Failed to save preset: {bundle.flux.key}")

    if outcome == SaveOutcome.DELETED:
        message = f"'{bundle.flux.key}' equals the default; file removed"
    else:
        message = f"Saved '{bundle.flux.key}'"
    return SaveResponse(outcome=outcome.value, message=message)


# ============================================================================
# FILE MANAGER
# ============================================================================

@router.get("/files", response_model=PresetFileListResponse)
async def list_files(request: Request):
    entries = request.app.state.session.list_files()
    return PresetFileListResponse(
        files=[
            PresetFileEntry(key=e.key, first=e.first, last=e.last, total=e.total)
            for e in entries
        ]
    )


@router.delete("/files/{key}", response_model=OperationResponse)
async def delete_file(key: str, request: Request):
    session = request.app.state.session
    if key not in session.presets or not session.presets.file_exists(key):
        raise HTTPException(status_code=404, detail=f"Preset file not found: {key}")

    if not session.delete_file(key):
        raise HTTPException(status_code=500, detail=f"Failed to delete preset file: {key}")
    return OperationResponse(success=True, message=f"Deleted '{key}'")
