"""GroupChatService: создание, состав и роли, выход, сообщения."""
import pytest

from sharehub.core.errors import ForbiddenError, NotFoundError, ValidationError
from sharehub.models.group_chat import ROLE_ADMIN, ROLE_MEMBER, GroupChat, GroupMember
from sharehub.services.messages.groups import GroupChatService


class TestCreate:
    def test_creator_is_admin(self, db, make_account):
        alice = make_account("alice")
        bob = make_account("bob")
        svc = GroupChatService(db)

        group = svc.create(alice.id, "  Друзья  ", [bob.id, bob.id, alice.id], description="чат")

        assert group.name == "Друзья"
        assert group.created_by == alice.id
        roles = {m.username: m.role for m in svc.members(group.id, bob.id)}
        assert roles == {"alice": ROLE_ADMIN, "bob": ROLE_MEMBER}
        assert [g.id for g in svc.list_for_user(bob.id)] == [group.id]

    def test_validation(self, db, make_account):
        alice = make_account()
        svc = GroupChatService(db)
        with pytest.raises(ValidationError):
            svc.create(alice.id, "   ", [make_account().id])
        with pytest.raises(ValidationError):
            svc.create(alice.id, "Одна", [alice.id])
        with pytest.raises(NotFoundError):
            svc.create(alice.id, "Призраки", ["ghost"])
        assert db.query(GroupChat).count() == 0


class TestMembership:
    @pytest.fixture
    def setup(self, db, make_account):
        admin = make_account("admin")
        member = make_account("member")
        outsider = make_account("outsider")
        svc = GroupChatService(db)
        group = svc.create(admin.id, "Группа", [member.id])
        return svc, group, admin, member, outsider

    def test_admin_adds_and_removes(self, db, setup):
        svc, group, admin, member, outsider = setup

        svc.add_member(group.id, admin.id, outsider.id)
        with pytest.raises(ValidationError):
            svc.add_member(group.id, admin.id, outsider.id)
        assert {m.username for m in svc.members(group.id, admin.id)} == {"admin", "member", "outsider"}

        svc.remove_member(group.id, admin.id, outsider.id)
        assert svc.get_membership(group.id, outsider.id) is None
        with pytest.raises(ValidationError):
            svc.remove_member(group.id, admin.id, admin.id)

    def test_member_cannot_manage(self, setup):
        svc, group, admin, member, outsider = setup
        with pytest.raises(ForbiddenError):
            svc.add_member(group.id, member.id, outsider.id)
        with pytest.raises(ForbiddenError):
            svc.remove_member(group.id, member.id, admin.id)
        with pytest.raises(ForbiddenError):
            svc.update(group.id, member.id, name="Моя")

    def test_admin_updates_settings(self, setup):
        svc, group, admin, member, outsider = setup
        updated = svc.update(group.id, admin.id, name="Новое имя", description="")
        assert updated.name == "Новое имя"
        assert updated.description is None

    def test_outsider_sees_nothing(self, setup):
        svc, group, admin, member, outsider = setup
        with pytest.raises(NotFoundError):
            svc.get(group.id, outsider.id)
        with pytest.raises(NotFoundError):
            svc.messages(group.id, outsider.id)
        with pytest.raises(NotFoundError):
            svc.send(group.id, outsider.id, "привет")

    def test_last_admin_leaving_promotes_member(self, db, setup):
        svc, group, admin, member, outsider = setup
        svc.leave(group.id, admin.id)

        membership = svc.get_membership(group.id, member.id)
        assert membership.role == ROLE_ADMIN
        assert svc.get_membership(group.id, admin.id) is None

    def test_empty_group_is_deleted(self, db, setup):
        svc, group, admin, member, outsider = setup
        svc.send(group.id, member.id, "пока")
        svc.leave(group.id, member.id)
        svc.leave(group.id, admin.id)

        assert db.query(GroupChat).filter(GroupChat.id == group.id).count() == 0
        assert db.query(GroupMember).filter(GroupMember.group_id == group.id).count() == 0


class TestGroupMessages:
    def test_send_and_read(self, db, make_account):
        alice = make_account()
        bob = make_account()
        svc = GroupChatService(db)
        group = svc.create(alice.id, "Чат", [bob.id])

        svc.send(group.id, alice.id, "первое")
        svc.send(group.id, bob.id, "второе")

        assert [m.content for m in svc.messages(group.id, alice.id)] == ["первое", "второе"]
        with pytest.raises(ValidationError):
            svc.send(group.id, alice.id, "   ")
