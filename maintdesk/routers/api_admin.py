from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db.session import get_db
from ..deps.actor import ActorContext, current_actor
from ..schemas.commands import CommandResult
from ..schemas.snapshot import StateSnapshot
from ..services import commands
from ..services.scenarios import Scenario
from ..services.snapshot import export_snapshot
from .responses import command_response

router = APIRouter(prefix="/api/v1/admin", tags=["admin"])


@router.post("/reset", response_model=CommandResult)
def api_reset(actor: ActorContext = Depends(current_actor), db: Session = Depends(get_db)):
    return command_response(commands.reset_to_seed_data(db, actor.role))


@router.post("/scenarios/{scenario}", response_model=CommandResult, status_code=201)
def api_run_scenario(scenario: Scenario, actor: ActorContext = Depends(current_actor), db: Session = Depends(get_db)):
    return command_response(commands.run_scenario(db, actor.role, scenario), 201)


@router.get("/snapshot", response_model=StateSnapshot)
def api_export_snapshot(db: Session = Depends(get_db)):
    return export_snapshot(db)


@router.post("/snapshot", response_model=CommandResult)
def api_import_snapshot(
    payload: StateSnapshot, actor: ActorContext = Depends(current_actor), db: Session = Depends(get_db)
):
    return command_response(commands.import_state_snapshot(db, actor.role, payload))
