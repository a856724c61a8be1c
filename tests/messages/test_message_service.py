"""MessageService: отправка, переписка, список диалогов, прочтение."""
import pytest

from sharehub.core.errors import NotFoundError, ValidationError
from sharehub.services.messages.service import MessageService


class TestMessages:
    def test_thread_and_conversations(self, db, make_account):
        alice = make_account("alice")
        bob = make_account("bob")
        carol = make_account("carol")
        svc = MessageService(db)

        svc.send(alice.id, bob.id, "hi bob")
        svc.send(bob.id, alice.id, "hi alice")
        svc.send(carol.id, alice.id, "yo")

        assert [m.content for m in svc.thread(alice.id, bob.id)] == ["hi bob", "hi alice"]
        convs = {c.partner_username: c for c in svc.conversations(alice.id)}
        assert set(convs) == {"bob", "carol"}
        assert convs["carol"].unread_count == 1
        assert svc.unread_count(alice.id) == 2

        assert svc.mark_read(alice.id, bob.id) == 1
        assert svc.unread_count(alice.id) == 1

    def test_validation(self, db, make_account):
        alice = make_account()
        svc = MessageService(db)
        with pytest.raises(ValidationError):
            svc.send(alice.id, make_account().id, "   ")
        with pytest.raises(ValidationError):
            svc.send(alice.id, alice.id, "me")
        with pytest.raises(NotFoundError):
            svc.send(alice.id, "ghost", "hello")
