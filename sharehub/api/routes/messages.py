from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session

from sharehub.api.deps import get_current_account
from sharehub.db.session import get_db
from sharehub.models.user import Account
from sharehub.schemas.messages import ConversationOut, CountOut, MessageIn, MessageOut
from sharehub.services.messages.service import MessageService

router = APIRouter(prefix="/messages", tags=["messages"])


@router.get("/conversations", response_model=list[ConversationOut])
def conversations(account: Account = Depends(get_current_account), db: Session = Depends(get_db)):
    return [ConversationOut(**c.model_dump()) for c in MessageService(db).conversations(account.id)]


@router.get("/unread-count", response_model=CountOut)
def unread_count(account: Account = Depends(get_current_account), db: Session = Depends(get_db)):
    return CountOut(count=MessageService(db).unread_count(account.id))


@router.get("/{partner_id}", response_model=list[MessageOut])
def thread(
    partner_id: str,
    limit: int = Query(100, ge=1, le=500),
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db),
):
    return [MessageOut.model_validate(m) for m in MessageService(db).thread(account.id, partner_id, limit=limit)]


@router.post("", response_model=MessageOut)
def send(body: MessageIn = Body(...), account: Account = Depends(get_current_account), db: Session = Depends(get_db)):
    message = MessageService(db).send(account.id, body.receiver_id, body.content, body.image_url)
    return MessageOut.model_validate(message)


@router.post("/{partner_id}/read", response_model=CountOut)
def mark_read(partner_id: str, account: Account = Depends(get_current_account), db: Session = Depends(get_db)):
    return CountOut(count=MessageService(db).mark_read(account.id, partner_id))
