"""AccountService: регистрация, вход, профиль, поиск, удаление."""
import os

import pytest

from sharehub.core.errors import AuthError, ValidationError
from sharehub.models.group_chat import ROLE_ADMIN, GroupChat
from sharehub.models.media import Media
from sharehub.models.notification import NotificationSettings
from sharehub.models.post import Post
from sharehub.models.user import Account
from sharehub.services.auth.security import create_access_token, decode_access_token
from sharehub.services.media.service import MediaService
from sharehub.services.messages.groups import GroupChatService
from sharehub.services.social.service import SocialService
from sharehub.services.users.service import AccountService
from sharehub.storage.local import LocalStorage


class TestSignup:
    def test_signup_and_login(self, db):
        svc = AccountService(db)
        account = svc.signup("alice_1", "password1", is_18_confirmed=True)

        assert account.token_balance == 0
        assert db.query(NotificationSettings).filter(NotificationSettings.user_id == account.id).count() == 1
        assert svc.authenticate("alice_1", "password1").id == account.id
        with pytest.raises(AuthError):
            svc.authenticate("alice_1", "wrong-pass")

    @pytest.mark.parametrize(
        "username,password,adult",
        [
            ("ab", "password1", True),
            ("bad name", "password1", True),
            ("alice", "123", True),
            ("alice", "password1", False),
        ],
    )
    def test_signup_validation(self, db, username, password, adult):
        with pytest.raises(ValidationError):
            AccountService(db).signup(username, password, is_18_confirmed=adult)

    def test_password_over_bcrypt_limit_rejected(self, db):
        svc = AccountService(db)
        with pytest.raises(ValidationError):
            svc.signup("longpw", "p" * 80, True)
        # 36 кириллических символов = 72 байта: ещё допустимо
        assert svc.signup("cyrillic", "ж" * 36, True).username == "cyrillic"
        with pytest.raises(ValidationError):
            svc.signup("cyrillic2", "ж" * 37, True)
        assert db.query(Account).filter(Account.username == "longpw").count() == 0

    def test_username_taken(self, db):
        svc = AccountService(db)
        svc.signup("alice", "password1", True)
        assert not svc.is_username_available("alice")
        with pytest.raises(ValidationError):
            svc.signup("alice", "password2", True)


class TestTokens:
    def test_access_token_roundtrip(self):
        assert decode_access_token(create_access_token("acc-1")) == "acc-1"

    def test_expired_token(self):
        with pytest.raises(AuthError) as exc:
            decode_access_token(create_access_token("acc-1", ttl_seconds=-10))
        assert exc.value.message == "Token expired"


class TestProfile:
    def test_update_profile(self, db, make_account):
        account = make_account("bob")
        updated = AccountService(db).update_profile(account, username="bobby", bio="hi")
        assert updated.username == "bobby"
        assert updated.bio == "hi"

    def test_search_by_prefix_escapes_wildcards(self, db, make_account):
        make_account("carol")
        make_account("caroline")
        make_account("dave")
        svc = AccountService(db)

        assert [a.username for a in svc.search("car")] == ["carol", "caroline"]
        assert svc.search("%") == []
        assert svc.search("  ") == []

    def test_delete_account_fixes_counters(self, db, make_account, make_post):
        author = make_account("author")
        leaver = make_account("leaver")
        post = make_post(author)
        social = SocialService(db)
        social.toggle_like(leaver.id, post.id)
        social.toggle_subscription(leaver.id, author.id)
        make_post(leaver)

        AccountService(db).delete_account(leaver)

        db.refresh(author)
        db.refresh(post)
        assert author.subscribers_count == 0
        assert post.likes_count == 0
        assert db.query(Account).filter(Account.username == "leaver").count() == 0
        assert db.query(Post).count() == 1

    def test_change_password(self, db):
        svc = AccountService(db)
        account = svc.signup("changer", "password1", True)
        with pytest.raises(ValidationError):
            svc.change_password(account, "password1", "p" * 80)
        with pytest.raises(AuthError):
            svc.change_password(account, "wrong-pass", "password2")

        svc.change_password(account, "password1", "password2")
        assert svc.authenticate("changer", "password2").id == account.id

    def test_delete_account_removes_uploaded_files(self, db, make_account, tmp_path):
        storage = LocalStorage(base_path=str(tmp_path), public_url="http://cdn.test/uploads")
        owner = make_account()
        media = MediaService(db, storage=storage).upload(owner.id, "a.png", b"png")
        path = media.file_path
        assert os.path.exists(path)

        AccountService(db, storage=storage).delete_account(owner)

        assert not os.path.exists(path)
        assert db.query(Media).count() == 0

    def test_delete_account_leaves_groups(self, db, make_account):
        admin = make_account()
        member = make_account()
        other = make_account()
        groups = GroupChatService(db)
        group = groups.create(admin.id, "Группа", [member.id, other.id])
        groups.send(group.id, admin.id, "привет")
        solo = groups.create(admin.id, "Вдвоём", [member.id])
        groups.leave(solo.id, member.id)

        AccountService(db).delete_account(admin)

        roles = {m.user_id: m.role for m in groups.members(group.id, member.id)}
        assert set(roles) == {member.id, other.id}
        assert ROLE_ADMIN in roles.values()
        assert groups.messages(group.id, member.id) == []
        assert db.query(GroupChat).filter(GroupChat.id == solo.id).count() == 0
