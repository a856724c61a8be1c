"""
GroupChatService: групповые чаты.

Создатель становится admin, приглашённые: member.
Настройки и состав меняет только admin; выйти может любой участник.
Последний admin при выходе передаёт права самому раннему участнику; пустая группа удаляется.
"""
import logging
from datetime import datetime, timezone

from pydantic import BaseModel
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from sharehub.core.errors import ForbiddenError, NotFoundError, ValidationError
from sharehub.models.group_chat import ROLE_ADMIN, ROLE_MEMBER, GroupChat, GroupMember, GroupMessage
from sharehub.models.user import Account
from sharehub.services.messages.service import MAX_MESSAGE_LENGTH
from sharehub.services.realtime.publisher import RealtimePublisher, get_publisher

logger = logging.getLogger(__name__)

MAX_GROUP_NAME_LENGTH = 100


class GroupMemberView(BaseModel):
    user_id: str
    username: str
    avatar_url: str | None = None
    role: str
    joined_at: datetime


class GroupChatService:
    def __init__(self, db: Session, publisher: RealtimePublisher | None = None):
        self.db = db
        self.publisher = publisher or get_publisher()

    def get_group(self, group_id: str) -> GroupChat:
        group = self.db.query(GroupChat).filter(GroupChat.id == group_id).one_or_none()
        if group is None:
            raise NotFoundError("Group not found")
        return group

    def get_membership(self, group_id: str, user_id: str) -> GroupMember | None:
        return (
            self.db.query(GroupMember)
            .filter(GroupMember.group_id == group_id, GroupMember.user_id == user_id)
            .one_or_none()
        )

    def _require_member(self, group_id: str, user_id: str) -> GroupMember:
        self.get_group(group_id)
        membership = self.get_membership(group_id, user_id)
        if membership is None:
            # Чужая группа неотличима от несуществующей
            raise NotFoundError("Group not found")
        return membership

    def _require_admin(self, group_id: str, user_id: str) -> GroupMember:
        membership = self._require_member(group_id, user_id)
        if membership.role != ROLE_ADMIN:
            raise ForbiddenError("Только администратор может менять группу")
        return membership

    @staticmethod
    def _clean_name(name: str | None) -> str:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Укажите название группы")
        if len(name) > MAX_GROUP_NAME_LENGTH:
            raise ValidationError(f"Название длиннее {MAX_GROUP_NAME_LENGTH} символов")
        return name

    def create(
        self,
        creator_id: str,
        name: str,
        member_ids: list[str],
        description: str | None = None,
        avatar_url: str | None = None,
    ) -> GroupChat:
        name = self._clean_name(name)
        invited = [uid for uid in dict.fromkeys(member_ids or []) if uid != creator_id]
        if not invited:
            raise ValidationError("Добавьте хотя бы одного участника")
        found = {aid for (aid,) in self.db.query(Account.id).filter(Account.id.in_(invited))}
        if len(found) != len(invited):
            raise NotFoundError("Profile not found")

        group = GroupChat(
            name=name,
            description=(description or "").strip() or None,
            avatar_url=avatar_url,
            created_by=creator_id,
        )
        self.db.add(group)
        self.db.flush()
        self.db.add(GroupMember(group_id=group.id, user_id=creator_id, role=ROLE_ADMIN))
        for uid in invited:
            self.db.add(GroupMember(group_id=group.id, user_id=uid, role=ROLE_MEMBER))
        self.db.commit()
        self.db.refresh(group)
        self.publisher.publish_row("INSERT", group)
        logger.info("group_created", extra={"user_id": creator_id, "group_id": group.id, "count": len(invited) + 1})
        return group

    def list_for_user(self, user_id: str) -> list[GroupChat]:
        group_ids = select(GroupMember.group_id).where(GroupMember.user_id == user_id)
        return (
            self.db.query(GroupChat)
            .filter(GroupChat.id.in_(group_ids))
            .order_by(GroupChat.updated_at.desc())
            .all()
        )

    def get(self, group_id: str, user_id: str) -> GroupChat:
        self._require_member(group_id, user_id)
        return self.get_group(group_id)

    def update(
        self,
        group_id: str,
        user_id: str,
        name: str | None = None,
        description: str | None = None,
        avatar_url: str | None = None,
    ) -> GroupChat:
        self._require_admin(group_id, user_id)
        group = self.get_group(group_id)
        if name is not None:
            group.name = self._clean_name(name)
        if description is not None:
            group.description = description.strip() or None
        if avatar_url is not None:
            group.avatar_url = avatar_url or None
        self.db.add(group)
        self.db.commit()
        self.db.refresh(group)
        self.publisher.publish_row("UPDATE", group)
        return group

    def members(self, group_id: str, user_id: str) -> list[GroupMemberView]:
        self._require_member(group_id, user_id)
        rows = (
            self.db.query(GroupMember, Account)
            .join(Account, Account.id == GroupMember.user_id)
            .filter(GroupMember.group_id == group_id)
            .order_by(GroupMember.joined_at)
            .all()
        )
        return [
            GroupMemberView(
                user_id=m.user_id,
                username=a.username,
                avatar_url=a.avatar_url,
                role=m.role,
                joined_at=m.joined_at,
            )
            for m, a in rows
        ]

    def add_member(self, group_id: str, admin_id: str, user_id: str) -> GroupMember:
        self._require_admin(group_id, admin_id)
        if self.db.query(Account.id).filter(Account.id == user_id).first() is None:
            raise NotFoundError("Profile not found")
        if self.get_membership(group_id, user_id) is not None:
            raise ValidationError("Пользователь уже в группе")
        member = GroupMember(group_id=group_id, user_id=user_id, role=ROLE_MEMBER)
        try:
            self.db.add(member)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ValidationError("Пользователь уже в группе")
        self.db.refresh(member)
        self.publisher.publish_row("INSERT", member)
        logger.info("group_member_added", extra={"group_id": group_id, "user_id": admin_id, "target_user_id": user_id})
        return member

    def remove_member(self, group_id: str, admin_id: str, user_id: str) -> None:
        self._require_admin(group_id, admin_id)
        if user_id == admin_id:
            raise ValidationError("Чтобы выйти из группы, используйте выход")
        member = self.get_membership(group_id, user_id)
        if member is None:
            raise NotFoundError("Member not found")
        self.db.delete(member)
        self.db.commit()
        self.publisher.publish("group_members", "DELETE", {"group_id": group_id, "user_id": user_id})
        logger.info("group_member_removed", extra={"group_id": group_id, "user_id": admin_id, "target_user_id": user_id})

    def leave(self, group_id: str, user_id: str) -> None:
        membership = self._require_member(group_id, user_id)
        was_admin = membership.role == ROLE_ADMIN
        self.db.delete(membership)
        self.db.flush()

        remaining = (
            self.db.query(GroupMember)
            .filter(GroupMember.group_id == group_id)
            .order_by(GroupMember.joined_at)
            .all()
        )
        if not remaining:
            self.db.execute(delete(GroupMessage).where(GroupMessage.group_id == group_id))
            self.db.execute(delete(GroupChat).where(GroupChat.id == group_id))
            self.db.commit()
            logger.info("group_deleted", extra={"group_id": group_id, "user_id": user_id})
            return
        if was_admin and not any(m.role == ROLE_ADMIN for m in remaining):
            remaining[0].role = ROLE_ADMIN
            self.db.add(remaining[0])
        self.db.commit()
        self.publisher.publish("group_members", "DELETE", {"group_id": group_id, "user_id": user_id})
        logger.info("group_left", extra={"group_id": group_id, "user_id": user_id})

    def send(self, group_id: str, sender_id: str, content: str, image_url: str | None = None) -> GroupMessage:
        self._require_member(group_id, sender_id)
        content = (content or "").strip()
        if not content and not image_url:
            raise ValidationError("Пустое сообщение")
        if len(content) > MAX_MESSAGE_LENGTH:
            raise ValidationError(f"Сообщение длиннее {MAX_MESSAGE_LENGTH} символов")

        message = GroupMessage(group_id=group_id, sender_id=sender_id, content=content, image_url=image_url)
        self.db.add(message)
        group = self.get_group(group_id)
        group.updated_at = datetime.now(timezone.utc)
        self.db.commit()
        self.db.refresh(message)
        self.publisher.publish_row("INSERT", message)
        return message

    def messages(self, group_id: str, user_id: str, limit: int = 100) -> list[GroupMessage]:
        """Сообщения группы, от старых к новым."""
        self._require_member(group_id, user_id)
        rows = (
            self.db.query(GroupMessage)
            .filter(GroupMessage.group_id == group_id)
            .order_by(GroupMessage.created_at.desc())
            .limit(limit)
            .all()
        )
        return list(reversed(rows))
