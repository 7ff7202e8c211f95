import os, secrets
from typing import Optional
from fastapi import APIRouter, Depends, Header, HTTPException
from sqlmodel import Session
from billsplit.db import get_session
from billsplit.models.schemas import PaymentEventIn
from billsplit.services import payment_service, split_service

router = APIRouter()

def require_gateway(x_webhook_secret: Optional[str] = Header(None)):
    expected = os.environ.get("PAYMENT_WEBHOOK_SECRET")
    if not expected or not x_webhook_secret or not secrets.compare_digest(expected, x_webhook_secret):
        raise HTTPException(status_code=401, detail="Invalid webhook secret")

@router.post("/splits/{split_id}/payments", dependencies=[Depends(require_gateway)])
def payment_webhook(split_id: int, data: PaymentEventIn, s: Session = Depends(get_session)):
    event = payment_service.record_payment_event(s, split_id, data)
    split = split_service.get_split(s, split_id)
    return {"payment_id": event.id, "split_status": split.status.value}
