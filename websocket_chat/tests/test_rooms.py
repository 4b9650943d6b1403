from unittest import mock

from django.test import SimpleTestCase

from websocket_chat.rooms import (
    ROOM_EVENT,
    RoomManager,
    conversation_room,
    group_name,
    user_room,
)


class RoomKeyTest(SimpleTestCase):
    def test_room_keys(self):
        self.assertEqual(user_room(5), "user:5")
        self.assertEqual(conversation_room(7), "conversation:7")

    def test_group_name_is_layer_safe(self):
        self.assertEqual(group_name("conversation:7"), "conversation.7")


class RoomManagerTest(SimpleTestCase):
    def setUp(self):
        self.layer = mock.Mock()
        self.layer.group_add = mock.AsyncMock()
        self.layer.group_discard = mock.AsyncMock()
        self.layer.group_send = mock.AsyncMock()
        self.rooms = RoomManager(channel_layer=self.layer)

    async def test_add_registers_membership(self):
        await self.rooms.add("conversation:1", "chan-a")

        self.assertTrue(self.rooms.is_member("conversation:1", "chan-a"))
        self.assertEqual(self.rooms.rooms_for("chan-a"), {"conversation:1"})
        self.layer.group_add.assert_awaited_once_with("conversation.1", "chan-a")

    async def test_add_twice_keeps_one_membership(self):
        await self.rooms.add("conversation:1", "chan-a")
        await self.rooms.add("conversation:1", "chan-a")
        self.assertEqual(self.rooms.members("conversation:1"), {"chan-a"})

    async def test_discard_non_member_is_noop(self):
        removed = await self.rooms.discard("conversation:1", "chan-a")
        self.assertFalse(removed)
        self.layer.group_discard.assert_not_awaited()

    async def test_discard_member(self):
        await self.rooms.add("conversation:1", "chan-a")
        await self.rooms.add("conversation:1", "chan-b")

        self.assertTrue(await self.rooms.discard("conversation:1", "chan-a"))
        self.assertEqual(self.rooms.members("conversation:1"), {"chan-b"})
        self.assertEqual(self.rooms.rooms_for("chan-a"), frozenset())
        self.layer.group_discard.assert_awaited_once_with("conversation.1", "chan-a")

    async def test_discard_all_releases_every_room(self):
        await self.rooms.add("user:1", "chan-a")
        await self.rooms.add("conversation:1", "chan-a")
        await self.rooms.add("conversation:1", "chan-b")

        released = await self.rooms.discard_all("chan-a")

        self.assertEqual(set(released), {"user:1", "conversation:1"})
        self.assertEqual(self.rooms.rooms_for("chan-a"), frozenset())
        self.assertEqual(self.rooms.members("user:1"), frozenset())
        self.assertEqual(self.rooms.members("conversation:1"), {"chan-b"})
        self.assertEqual(self.layer.group_discard.await_count, 2)

    async def test_broadcast(self):
        await self.rooms.broadcast("conversation:1", "userTyping", {"userId": 1}, exclude="chan-a")

        self.layer.group_send.assert_awaited_once_with(
            "conversation.1",
            {
                "type": ROOM_EVENT,
                "room": "conversation:1",
                "event": "userTyping",
                "data": {"userId": 1},
                "exclude": "chan-a",
            },
        )
