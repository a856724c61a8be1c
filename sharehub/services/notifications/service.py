import logging

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from sharehub.models.notification import Notification, NotificationSettings
from sharehub.models.post import Post
from sharehub.models.social import Subscription
from sharehub.services.realtime.publisher import RealtimePublisher, get_publisher

logger = logging.getLogger(__name__)

TYPE_LIKE = "like"
TYPE_COMMENT = "comment"
TYPE_SUBSCRIPTION = "subscription"
TYPE_NEW_POST = "new_post"
TYPE_PAYMENT_TIMEOUT = "payment_timeout"


class NotificationService:
    def __init__(self, db: Session, publisher: RealtimePublisher | None = None):
        self.db = db
        self.publisher = publisher or get_publisher()

    def notify(
        self,
        user_id: str,
        type: str,
        content: str,
        from_user_id: str | None = None,
        post_id: str | None = None,
    ) -> Notification | None:
        """Добавляет уведомление в сессию (commit: на вызывающем). Себе не уведомляем."""
        if from_user_id is not None and from_user_id == user_id:
            return None
        notification = Notification(
            user_id=user_id,
            from_user_id=from_user_id,
            post_id=post_id,
            type=type,
            content=content,
        )
        self.db.add(notification)
        self.db.flush()
        self.publisher.publish_row("INSERT", notification)
        return notification

    def notify_subscribers_of_post(self, post: Post, author_username: str) -> int:
        """Новый пост -> подписчикам автора, у кого notify_on_new_posts включён (нет настроек = включено)."""
        subscriber_ids = [
            sid for (sid,) in self.db.execute(
                select(Subscription.subscriber_id).where(Subscription.subscribed_to_id == post.user_id)
            )
        ]
        if not subscriber_ids:
            return 0
        muted = {
            uid for (uid,) in self.db.execute(
                select(NotificationSettings.user_id).where(
                    NotificationSettings.user_id.in_(subscriber_ids),
                    NotificationSettings.notify_on_new_posts.is_(False),
                )
            )
        }
        sent = 0
        for subscriber_id in subscriber_ids:
            if subscriber_id in muted:
                continue
            self.notify(
                subscriber_id,
                TYPE_NEW_POST,
                f"{author_username} опубликовал новый пост: {post.title}",
                from_user_id=post.user_id,
                post_id=post.id,
            )
            sent += 1
        logger.info("new_post_notifications_sent", extra={"post_id": post.id, "count": sent})
        return sent

    def list(self, user_id: str, limit: int = 50, unread_only: bool = False) -> list[Notification]:
        q = self.db.query(Notification).filter(Notification.user_id == user_id)
        if unread_only:
            q = q.filter(Notification.is_read.is_(False))
        return q.order_by(Notification.created_at.desc()).limit(limit).all()

    def unread_count(self, user_id: str) -> int:
        return (
            self.db.query(Notification)
            .filter(Notification.user_id == user_id, Notification.is_read.is_(False))
            .count()
        )

    def mark_read(self, user_id: str, notification_id: str) -> bool:
        res = self.db.execute(
            update(Notification)
            .where(Notification.id == notification_id, Notification.user_id == user_id)
            .values(is_read=True)
        )
        self.db.commit()
        return bool(res.rowcount)

    def mark_all_read(self, user_id: str) -> int:
        res = self.db.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True)
        )
        self.db.commit()
        return res.rowcount

    def get_settings(self, user_id: str) -> NotificationSettings:
        row = self.db.query(NotificationSettings).filter(NotificationSettings.user_id == user_id).one_or_none()
        if row is None:
            row = NotificationSettings(user_id=user_id, notify_on_new_posts=True)
            self.db.add(row)
            self.db.commit()
            self.db.refresh(row)
        return row

    def update_settings(self, user_id: str, notify_on_new_posts: bool) -> NotificationSettings:
        row = self.get_settings(user_id)
        row.notify_on_new_posts = notify_on_new_posts
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        return row
