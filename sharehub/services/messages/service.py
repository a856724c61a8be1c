import logging
from datetime import datetime

from pydantic import BaseModel
from sqlalchemy import and_, or_, update
from sqlalchemy.orm import Session

from sharehub.core.errors import NotFoundError, ValidationError
from sharehub.models.message import Message
from sharehub.models.user import Account
from sharehub.services.realtime.publisher import RealtimePublisher, get_publisher

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 4000


class Conversation(BaseModel):
    partner_id: str
    partner_username: str
    partner_avatar_url: str | None = None
    last_message: str
    last_message_at: datetime
    unread_count: int = 0


class MessageService:
    def __init__(self, db: Session, publisher: RealtimePublisher | None = None):
        self.db = db
        self.publisher = publisher or get_publisher()

    def send(self, sender_id: str, receiver_id: str, content: str, image_url: str | None = None) -> Message:
        content = (content or "").strip()
        if not content and not image_url:
            raise ValidationError("Пустое сообщение")
        if len(content) > MAX_MESSAGE_LENGTH:
            raise ValidationError(f"Сообщение длиннее {MAX_MESSAGE_LENGTH} символов")
        if sender_id == receiver_id:
            raise ValidationError("Нельзя написать самому себе")
        if self.db.query(Account.id).filter(Account.id == receiver_id).first() is None:
            raise NotFoundError("Profile not found")

        message = Message(sender_id=sender_id, receiver_id=receiver_id, content=content, image_url=image_url)
        self.db.add(message)
        self.db.commit()
        self.db.refresh(message)
        self.publisher.publish_row("INSERT", message)
        return message

    def thread(self, user_id: str, partner_id: str, limit: int = 100) -> list[Message]:
        """Переписка двух пользователей, от старых к новым."""
        rows = (
            self.db.query(Message)
            .filter(
                or_(
                    and_(Message.sender_id == user_id, Message.receiver_id == partner_id),
                    and_(Message.sender_id == partner_id, Message.receiver_id == user_id),
                )
            )
            .order_by(Message.created_at.desc())
            .limit(limit)
            .all()
        )
        return list(reversed(rows))

    def conversations(self, user_id: str) -> list[Conversation]:
        messages = (
            self.db.query(Message)
            .filter(or_(Message.sender_id == user_id, Message.receiver_id == user_id))
            .order_by(Message.created_at.desc())
            .all()
        )
        latest: dict[str, Message] = {}
        unread: dict[str, int] = {}
        for m in messages:
            partner = m.receiver_id if m.sender_id == user_id else m.sender_id
            latest.setdefault(partner, m)
            if m.receiver_id == user_id and not m.is_read:
                unread[partner] = unread.get(partner, 0) + 1
        if not latest:
            return []

        partners = {
            a.id: a for a in self.db.query(Account).filter(Account.id.in_(list(latest.keys()))).all()
        }
        result = []
        for partner_id, m in latest.items():
            account = partners.get(partner_id)
            if account is None:
                continue
            result.append(
                Conversation(
                    partner_id=partner_id,
                    partner_username=account.username,
                    partner_avatar_url=account.avatar_url,
                    last_message=m.content,
                    last_message_at=m.created_at,
                    unread_count=unread.get(partner_id, 0),
                )
            )
        return result

    def mark_read(self, user_id: str, partner_id: str) -> int:
        """Все входящие от partner_id -> прочитаны."""
        res = self.db.execute(
            update(Message)
            .where(
                Message.receiver_id == user_id,
                Message.sender_id == partner_id,
                Message.is_read.is_(False),
            )
            .values(is_read=True)
        )
        self.db.commit()
        return res.rowcount

    def unread_count(self, user_id: str) -> int:
        return (
            self.db.query(Message)
            .filter(Message.receiver_id == user_id, Message.is_read.is_(False))
            .count()
        )
