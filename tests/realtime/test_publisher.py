"""Realtime: фильтры подписки, видимость личных и групповых таблиц, публикация в Redis."""
import json
import unittest
from unittest.mock import MagicMock

import pytest
import redis

from sharehub.services.media.service import MediaService
from sharehub.services.posts.service import PostService
from sharehub.services.realtime.publisher import (
    RealtimePublisher,
    channel_for,
    group_scope,
    matches_filter,
    parse_filter,
    visible_to,
)
from sharehub.storage.local import LocalStorage


class TestFilters(unittest.TestCase):
    def test_parse_eq_filter(self):
        self.assertEqual(parse_filter("post_id=eq.abc"), ("post_id", "abc"))
        self.assertIsNone(parse_filter(None))
        with self.assertRaises(ValueError):
            parse_filter("post_id=gt.1")

    def test_matches(self):
        flt = ("post_id", "abc")
        self.assertTrue(matches_filter({"post_id": "abc"}, flt))
        self.assertFalse(matches_filter({"post_id": "xyz"}, flt))
        self.assertTrue(matches_filter({"post_id": "xyz"}, None))

    def test_private_tables(self):
        record = {"sender_id": "a", "receiver_id": "b"}
        self.assertTrue(visible_to("messages", record, "b"))
        self.assertFalse(visible_to("messages", record, "c"))
        self.assertFalse(visible_to("notifications", {"user_id": "a"}, None))
        self.assertTrue(visible_to("posts", {"user_id": "a"}, None))

    def test_group_tables_need_group_filter(self):
        self.assertEqual(group_scope("group_messages", ("group_id", "g1")), "g1")
        self.assertEqual(group_scope("group_chats", ("id", "g1")), "g1")
        self.assertIsNone(group_scope("posts", None))
        with self.assertRaises(ValueError):
            group_scope("group_messages", None)
        with self.assertRaises(ValueError):
            group_scope("group_members", ("user_id", "u1"))
        self.assertFalse(visible_to("group_messages", {"group_id": "g1"}, None))


class TestPublisher(unittest.TestCase):
    def test_publish_to_table_channel(self):
        client = MagicMock()
        RealtimePublisher(client=client, enabled=True).publish("comments", "INSERT", {"id": "c1"})

        channel, message = client.publish.call_args.args
        self.assertEqual(channel, channel_for("comments"))
        self.assertEqual(json.loads(message), {"table": "comments", "event": "INSERT", "record": {"id": "c1"}})

    def test_redis_failure_is_logged_not_raised(self):
        client = MagicMock()
        client.publish.side_effect = redis.ConnectionError("down")
        RealtimePublisher(client=client, enabled=True).publish("posts", "INSERT", {"id": "p1"})

    def test_disabled(self):
        client = MagicMock()
        RealtimePublisher(client=client, enabled=False).publish("posts", "INSERT", {"id": "p1"})
        client.publish.assert_not_called()


def _published(client, table):
    return [
        json.loads(call.args[1])["record"]
        for call in client.publish.call_args_list
        if call.args[0] == channel_for(table)
    ]


class TestGatedRows:
    @pytest.fixture
    def client(self):
        return MagicMock()

    @pytest.fixture
    def publisher(self, client):
        return RealtimePublisher(client=client, enabled=True)

    def test_locked_post_body_not_published(self, db, make_account, client, publisher):
        author = make_account()
        svc = PostService(db, publisher=publisher)
        svc.create(
            author, "paid", "SECRET BODY", image_url="http://h/i.jpg", view_condition="subscription", token_cost="10"
        )
        svc.create(author, "free", "open body")

        paid, free = _published(client, "posts")
        assert "content" not in paid
        assert "image_url" not in paid
        assert paid["locked"] is True
        assert paid["token_cost"] == 10.0
        assert free["content"] == "open body"
        assert free["locked"] is False

    def test_password_post_body_not_published(self, db, make_account, client, publisher):
        PostService(db, publisher=publisher).create(make_account(), "secret", "SECRET BODY", password="pw")

        (record,) = _published(client, "posts")
        assert "content" not in record
        assert "password" not in record
        assert record["locked"] is True

    def test_paid_media_url_not_published(self, db, make_account, client, publisher, tmp_path):
        storage = LocalStorage(base_path=str(tmp_path), public_url="http://h/uploads")
        svc = MediaService(db, storage=storage, publisher=publisher)
        owner = make_account()
        svc.upload(owner.id, "a.jpg", b"jpg", token_cost="5")
        svc.upload(owner.id, "b.jpg", b"jpg")

        paid, free = _published(client, "media")
        assert "file_url" not in paid
        assert "file_path" not in paid
        assert paid["locked"] is True
        assert free["file_url"].startswith("http://h/uploads/")
