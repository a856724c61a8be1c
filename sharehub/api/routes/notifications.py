from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session

from sharehub.api.deps import get_current_account
from sharehub.core.errors import NotFoundError
from sharehub.db.session import get_db
from sharehub.models.user import Account
from sharehub.schemas.messages import CountOut
from sharehub.schemas.notifications import NotificationOut, NotificationSettingsIn, NotificationSettingsOut
from sharehub.services.notifications.service import NotificationService

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=list[NotificationOut])
def list_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db),
):
    items = NotificationService(db).list(account.id, limit=limit, unread_only=unread_only)
    return [NotificationOut.model_validate(n) for n in items]


@router.get("/unread-count", response_model=CountOut)
def unread_count(account: Account = Depends(get_current_account), db: Session = Depends(get_db)):
    return CountOut(count=NotificationService(db).unread_count(account.id))


@router.post("/read-all", response_model=CountOut)
def mark_all_read(account: Account = Depends(get_current_account), db: Session = Depends(get_db)):
    return CountOut(count=NotificationService(db).mark_all_read(account.id))


@router.get("/settings", response_model=NotificationSettingsOut)
def get_settings(account: Account = Depends(get_current_account), db: Session = Depends(get_db)):
    return NotificationSettingsOut.model_validate(NotificationService(db).get_settings(account.id))


@router.put("/settings", response_model=NotificationSettingsOut)
def update_settings(
    body: NotificationSettingsIn = Body(...),
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db),
):
    row = NotificationService(db).update_settings(account.id, body.notify_on_new_posts)
    return NotificationSettingsOut.model_validate(row)


@router.post("/{notification_id}/read")
def mark_read(notification_id: str, account: Account = Depends(get_current_account), db: Session = Depends(get_db)):
    if not NotificationService(db).mark_read(account.id, notification_id):
        raise NotFoundError("Notification not found")
    return {"success": True}
