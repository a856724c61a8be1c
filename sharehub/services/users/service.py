import logging
import re
from decimal import Decimal

from sqlalchemy import delete, or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from sharehub.core.config import settings
from sharehub.core.errors import AuthError, ValidationError
from sharehub.models.group_chat import GroupMember, GroupMessage
from sharehub.models.live_stream import LiveStream
from sharehub.models.media import Media
from sharehub.models.message import Message
from sharehub.models.notification import Notification, NotificationSettings
from sharehub.models.post import Post
from sharehub.models.social import Comment, PostLike, Subscription
from sharehub.models.user import Account
from sharehub.services.auth.security import BCRYPT_MAX_PASSWORD_BYTES, hash_password, verify_password
from sharehub.services.messages.groups import GroupChatService
from sharehub.storage.base import Storage
from sharehub.storage.local import LocalStorage

logger = logging.getLogger(__name__)

USERNAME_RE = re.compile(r"^[A-Za-z0-9_]+$")


class AccountService:
    def __init__(self, db: Session, storage: Storage | None = None):
        self.db = db
        self.storage = storage or LocalStorage()

    def get(self, account_id: str) -> Account | None:
        return self.db.query(Account).filter(Account.id == account_id).one_or_none()

    def get_by_username(self, username: str) -> Account | None:
        return self.db.query(Account).filter(Account.username == username).one_or_none()

    def is_username_available(self, username: str) -> bool:
        return self.get_by_username(username) is None

    def validate_username(self, username: str) -> str:
        username = (username or "").strip()
        if not settings.username_min_length <= len(username) <= settings.username_max_length:
            raise ValidationError(
                f"Username: от {settings.username_min_length} до {settings.username_max_length} символов"
            )
        if not USERNAME_RE.match(username):
            raise ValidationError("Username может содержать только латиницу, цифры и _")
        return username

    def validate_password(self, password: str) -> str:
        password = password or ""
        if len(password) < settings.password_min_length:
            raise ValidationError(f"Пароль должен быть не короче {settings.password_min_length} символов")
        if len(password.encode("utf-8")) > BCRYPT_MAX_PASSWORD_BYTES:
            raise ValidationError(f"Пароль длиннее {BCRYPT_MAX_PASSWORD_BYTES} байт")
        return password

    def signup(self, username: str, password: str, is_18_confirmed: bool) -> Account:
        username = self.validate_username(username)
        self.validate_password(password)
        if not is_18_confirmed:
            raise ValidationError("Необходимо подтвердить, что вам есть 18 лет")
        if not self.is_username_available(username):
            raise ValidationError("Username уже занят")

        account = Account(
            username=username,
            password_hash=hash_password(password),
            is_18_confirmed=True,
        )
        try:
            self.db.add(account)
            self.db.flush()
            self.db.add(NotificationSettings(user_id=account.id, notify_on_new_posts=True))
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ValidationError("Username уже занят")
        self.db.refresh(account)
        logger.info("account_created", extra={"user_id": account.id})
        return account

    def authenticate(self, username: str, password: str) -> Account:
        account = self.get_by_username((username or "").strip())
        if account is None or not verify_password(password, account.password_hash):
            raise AuthError("Неверный username или пароль")
        return account

    def update_profile(
        self,
        account: Account,
        username: str | None = None,
        bio: str | None = None,
        avatar_url: str | None = None,
    ) -> Account:
        if username is not None and username != account.username:
            username = self.validate_username(username)
            if not self.is_username_available(username):
                raise ValidationError("Username уже занят")
            account.username = username
        if bio is not None:
            account.bio = bio
        if avatar_url is not None:
            account.avatar_url = avatar_url
        try:
            self.db.add(account)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ValidationError("Username уже занят")
        self.db.refresh(account)
        return account

    def change_password(self, account: Account, current_password: str, new_password: str) -> None:
        if not verify_password(current_password, account.password_hash):
            raise AuthError("Неверный пароль")
        self.validate_password(new_password)
        account.password_hash = hash_password(new_password)
        self.db.add(account)
        self.db.commit()

    def search(self, query: str, limit: int = 20) -> list[Account]:
        query = (query or "").strip()
        if not query:
            return []
        escaped = query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        return (
            self.db.query(Account)
            .filter(Account.username.ilike(f"{escaped}%", escape="\\"))
            .order_by(Account.username)
            .limit(limit)
            .all()
        )

    def get_balance(self, account_id: str) -> Decimal:
        account = self.get(account_id)
        return Decimal(account.token_balance) if account else Decimal("0")

    def delete_account(self, account: Account) -> None:
        """
        Удаление аккаунта вместе с его контентом, файлами и перепиской; из групп аккаунт выходит.
        Записи о покупках и разблокировках остаются (финансовая история).
        """
        account_id = account.id
        groups = GroupChatService(self.db)
        for (group_id,) in self.db.query(GroupMember.group_id).filter(GroupMember.user_id == account_id).all():
            groups.leave(group_id, account_id)
        self.db.execute(delete(GroupMessage).where(GroupMessage.sender_id == account_id))

        post_ids = [pid for (pid,) in self.db.query(Post.id).filter(Post.user_id == account_id)]
        if post_ids:
            self.db.execute(delete(Comment).where(Comment.post_id.in_(post_ids)))
            self.db.execute(delete(PostLike).where(PostLike.post_id.in_(post_ids)))
        liked = [pid for (pid,) in self.db.query(PostLike.post_id).filter(PostLike.user_id == account_id)]
        if liked:
            self.db.execute(
                update(Post)
                .where(Post.id.in_(liked), Post.likes_count > 0)
                .values(likes_count=Post.likes_count - 1)
            )
        self.db.execute(delete(Comment).where(Comment.user_id == account_id))
        self.db.execute(delete(PostLike).where(PostLike.user_id == account_id))
        # счётчики подписчиков тех, на кого был подписан аккаунт
        subscribed_to = [
            sid for (sid,) in self.db.query(Subscription.subscribed_to_id).filter(Subscription.subscriber_id == account_id)
        ]
        if subscribed_to:
            self.db.execute(
                update(Account)
                .where(Account.id.in_(subscribed_to), Account.subscribers_count > 0)
                .values(subscribers_count=Account.subscribers_count - 1)
            )
        self.db.execute(
            delete(Subscription).where(
                or_(Subscription.subscriber_id == account_id, Subscription.subscribed_to_id == account_id)
            )
        )
        self.db.execute(
            delete(Message).where(or_(Message.sender_id == account_id, Message.receiver_id == account_id))
        )
        file_paths = [p for (p,) in self.db.query(Media.file_path).filter(Media.user_id == account_id) if p]
        self.db.execute(delete(Media).where(Media.user_id == account_id))
        self.db.execute(delete(Post).where(Post.user_id == account_id))
        self.db.execute(delete(LiveStream).where(LiveStream.user_id == account_id))
        self.db.execute(delete(Notification).where(Notification.user_id == account_id))
        self.db.execute(delete(NotificationSettings).where(NotificationSettings.user_id == account_id))
        self.db.delete(account)
        self.db.commit()
        for path in file_paths:
            self.storage.delete(path)
        logger.info("account_deleted", extra={"user_id": account_id})
