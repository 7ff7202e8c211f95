from fastapi import APIRouter, Request, Depends, HTTPException
from sqlmodel import Session
from billsplit.db import get_session
from billsplit.models.schemas import ReceiptSplitCreate, SplitCreate
from billsplit.models.user import User
from billsplit.services import split_service

router = APIRouter()

def require_user(request: Request, s: Session = Depends(get_session)) -> User:
    user = request.session.get("user")
    if not user:
        raise HTTPException(status_code=401, detail="Login required")
    db_user = s.get(User, user["id"])
    if not db_user:
        request.session.pop("user", None)
        raise HTTPException(status_code=401, detail="Login required")
    return db_user

@router.get("/")
def index(current_user: User = Depends(require_user), s: Session = Depends(get_session)):
    splits = split_service.user_splits(s, current_user)
    return {"user": {"id": current_user.id, "name": current_user.name},
            "splits": [split_service.summary_dict(s, sp) for sp in splits]}

@router.post("/splits", status_code=201)
def create_split(data: SplitCreate, current_user: User = Depends(require_user), s: Session = Depends(get_session)):
    split = split_service.create_split(s, current_user, data)
    return split_service.summary_dict(s, split)

@router.post("/splits/receipt", status_code=201)
def create_receipt_split(data: ReceiptSplitCreate, current_user: User = Depends(require_user), s: Session = Depends(get_session)):
    split = split_service.create_itemized_split(s, current_user, data)
    return split_service.summary_dict(s, split)

@router.get("/splits/{split_id}")
def view_split(split_id: int, current_user: User = Depends(require_user), s: Session = Depends(get_session)):
    split = split_service.get_split(s, split_id)
    split_service.require_member(s, split, current_user)
    return split_service.summary_dict(s, split)

@router.post("/splits/{split_id}/delete")
def delete_split(split_id: int, current_user: User = Depends(require_user), s: Session = Depends(get_session)):
    split_service.delete_split(s, split_id, current_user)
    return {"deleted": split_id}

@router.post("/splits/{split_id}/participants/{participant_id}/paid")
def mark_paid(split_id: int, participant_id: int, current_user: User = Depends(require_user), s: Session = Depends(get_session)):
    split_service.mark_paid(s, split_id, participant_id, current_user)
    return split_service.summary_dict(s, split_service.get_split(s, split_id))
