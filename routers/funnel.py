from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from sqlalchemy import desc
from database import get_db
import models, schemas
import logging

import funnel_mapping

router = APIRouter()

logger = logging.getLogger("app.funnel")


def _item(lead: models.Lead) -> dict:
    """Lead as shown on the board, status translated to its funnel stage"""
    item = schemas.FunnelItem.model_validate(lead).model_dump(by_alias=True)
    item["status"] = funnel_mapping.to_funnel_status(lead.status)
    return item


@router.get("/board")
def get_funnel_board(db: Session = Depends(get_db)):
    leads = db.query(models.Lead).order_by(desc(models.Lead.created_at), models.Lead.id).all()
    board = funnel_mapping.build_funnel_board([_item(lead) for lead in leads])
    return {
        "board": board,
        "stages": list(funnel_mapping.FUNNEL_STAGES),
        "stats": funnel_mapping.funnel_stats(board),
    }


@router.post("/leads", status_code=201)
def create_lead(lead: schemas.LeadCreate, db: Session = Depends(get_db)):
    db_lead = models.Lead(
        name=lead.name,
        email=lead.email,
        phone=lead.phone,
        status=funnel_mapping.to_db_status(funnel_mapping.to_funnel_status(lead.status)),
        type=lead.type,
        value=lead.value,
        service=lead.service
    )
    db.add(db_lead)
    db.commit()
    db.refresh(db_lead)
    return _item(db_lead)


@router.patch("/{lead_id}/stage")
def move_lead(lead_id: int, move: schemas.StageMove, db: Session = Depends(get_db)):
    """Move a lead to another board column; the stage is stored in the persisted vocabulary"""
    if move.status not in funnel_mapping.FUNNEL_STAGES:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid stage '{move.status}', expected one of {', '.join(funnel_mapping.FUNNEL_STAGES)}"
        )

    lead = db.query(models.Lead).filter(models.Lead.id == lead_id).first()
    if not lead:
        raise HTTPException(status_code=404, detail="Lead not found")

    previous = funnel_mapping.to_funnel_status(lead.status)
    lead.status = funnel_mapping.to_db_status(move.status)
    db.commit()
    db.refresh(lead)

    logger.info(f"Lead {lead_id} moved {previous} -> {move.status} (stored as '{lead.status}')")
    return _item(lead)
