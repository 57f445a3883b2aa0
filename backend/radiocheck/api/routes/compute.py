from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from radiocheck.api.deps import get_current_user, get_db
from radiocheck.schemas import ComputeStatusOut, ComputeToggleRequest
from radiocheck.services.errors import UpstreamError
from radiocheck.services.resource_lock import current_count
from radiocheck.services.runpod_control import EndpointState, RunPodControl

router = APIRouter(prefix="/compute", tags=["compute"])


def _status_out(state: EndpointState, lock_count: int) -> ComputeStatusOut:
    return ComputeStatusOut(
        endpoint_id=state.endpoint_id,
        name=state.name,
        workers_min=state.workers_min,
        workers_max=state.workers_max,
        active_workers=state.active_workers,
        is_on=state.is_on,
        lock_count=lock_count,
    )


@router.get("/status", response_model=ComputeStatusOut)
async def compute_status(db: Session = Depends(get_db), user_id: str = Depends(get_current_user)):
    try:
        control = RunPodControl.from_settings()
        try:
            state = await control.get_state()
        finally:
            await control.aclose()
    except UpstreamError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return _status_out(state, current_count(db))


@router.post("/toggle", response_model=ComputeStatusOut)
async def compute_toggle(
    payload: ComputeToggleRequest,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user),
):
    try:
        control = RunPodControl.from_settings()
        try:
            state = await control.set_enabled(payload.enable)
        finally:
            await control.aclose()
    except UpstreamError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return _status_out(state, current_count(db))
