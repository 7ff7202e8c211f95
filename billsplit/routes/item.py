from decimal import Decimal
from fastapi import APIRouter, Form, Depends
from sqlmodel import Session
from billsplit.db import get_session
from billsplit.models.user import User
from billsplit.routes.split import require_user
from billsplit.services import claim_service, split_service

router = APIRouter()

@router.get("/splits/{split_id}/items")
def list_items(split_id: int, current_user: User = Depends(require_user), s: Session = Depends(get_session)):
    return claim_service.claim_summary(s, split_id, current_user)

@router.get("/splits/{split_id}/breakdown")
def breakdown(split_id: int, current_user: User = Depends(require_user), s: Session = Depends(get_session)):
    summary = claim_service.claim_summary(s, split_id, current_user)
    return {"split_id": split_id, "all_claimed": summary["all_claimed"], "breakdown": summary["breakdown"]}

@router.post("/splits/{split_id}/items/{item_id}/claim")
def claim_item(
    split_id: int,
    item_id: int,
    quantity: int = Form(1),
    share_count: int = Form(1),
    current_user: User = Depends(require_user),
    s: Session = Depends(get_session),
):
    claim = claim_service.upsert_claim(s, split_id, item_id, current_user, quantity, share_count)
    remaining = claim_service.remaining_quantity(s, split_id, item_id)
    return {"item_id": item_id, "participant_id": claim.participant_id, "quantity": claim.quantity_claimed,
            "share_count": claim.share_count, "remaining": str(remaining)}

@router.post("/splits/{split_id}/items/{item_id}/release")
def release_item(split_id: int, item_id: int, current_user: User = Depends(require_user), s: Session = Depends(get_session)):
    claim_service.release_claim(s, split_id, item_id, current_user)
    return {"item_id": item_id, "remaining": str(claim_service.remaining_quantity(s, split_id, item_id))}

@router.post("/splits/{split_id}/items/{item_id}/edit")
def edit_item(
    split_id: int,
    item_id: int,
    name: str = Form(...),
    unit_price: Decimal = Form(...),
    quantity: int = Form(...),
    current_user: User = Depends(require_user),
    s: Session = Depends(get_session),
):
    item = claim_service.edit_line_item(s, split_id, item_id, current_user, name, unit_price, quantity)
    return {"id": item.id, "name": item.name, "unit_price": str(item.unit_price), "quantity": item.quantity}

@router.post("/splits/{split_id}/finalize")
def finalize(split_id: int, current_user: User = Depends(require_user), s: Session = Depends(get_session)):
    split = claim_service.finalize_split(s, split_id, current_user)
    return split_service.summary_dict(s, split)
