"""Workflow automation endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import Actor, get_current_actor
from ..database import get_db
from ..schemas import WorkflowActionBody
from ..use_cases.workflows import run_workflow_use_case

router = APIRouter(tags=["order-workflow-automation"])


@router.post("/order-workflow-automation")
def order_workflow_automation(
    body: WorkflowActionBody,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Run one workflow action atomically (replayable with an idempotency key)."""
    return {"data": run_workflow_use_case(db=db, request=body.root, actor=actor)}
