import logging
import threading
from collections import defaultdict

from channels.layers import get_channel_layer

logger = logging.getLogger(__name__)

ROOM_EVENT = "room.event"


def user_room(user_id):
    return f"user:{user_id}"


def conversation_room(conversation_id):
    return f"conversation:{conversation_id}"


def group_name(room):
    """
    Channel layer group for a room key.

    Group names only allow ASCII letters, digits, hyphens, underscores and
    periods, so ``conversation:7`` becomes ``conversation.7``.
    """
    return room.replace(":", ".")


class RoomManager:
    """
    In-memory membership index of which connections sit in which rooms.

    The index maps room keys to connection (channel) names and back. It is the
    only place room membership is mutated; every add/remove also updates the
    channel layer group so that broadcasts reach connections served by other
    worker processes. Index updates are short and guarded by a lock.
    """

    def __init__(self, channel_layer=None):
        self._channel_layer = channel_layer
        self._members = defaultdict(set)
        self._rooms = defaultdict(set)
        self._lock = threading.Lock()

    @property
    def channel_layer(self):
        # Looked up per use so test settings overrides take effect
        return self._channel_layer or get_channel_layer()

    async def add(self, room, channel_name):
        with self._lock:
            self._members[room].add(channel_name)
            self._rooms[channel_name].add(room)
        await self.channel_layer.group_add(group_name(room), channel_name)
        logger.debug("%s joined %s", channel_name, room)

    async def discard(self, room, channel_name):
        """Remove a connection from a room. No-op when it is not a member."""
        with self._lock:
            was_member = self._forget(room, channel_name)
        if was_member:
            await self.channel_layer.group_discard(group_name(room), channel_name)
            logger.debug("%s left %s", channel_name, room)
        return was_member

    async def discard_all(self, channel_name):
        """Release every room held by a connection and return their keys."""
        with self._lock:
            rooms = list(self._rooms.get(channel_name, ()))
            for room in rooms:
                self._forget(room, channel_name)
        for room in rooms:
            await self.channel_layer.group_discard(group_name(room), channel_name)
        return rooms

    def _forget(self, room, channel_name):
        members = self._members.get(room)
        if not members or channel_name not in members:
            return False
        members.discard(channel_name)
        if not members:
            del self._members[room]
        rooms = self._rooms.get(channel_name)
        if rooms is not None:
            rooms.discard(room)
            if not rooms:
                del self._rooms[channel_name]
        return True

    def is_member(self, room, channel_name):
        with self._lock:
            return channel_name in self._members.get(room, ())

    def members(self, room):
        with self._lock:
            return frozenset(self._members.get(room, ()))

    def rooms_for(self, channel_name):
        with self._lock:
            return frozenset(self._rooms.get(channel_name, ()))

    async def broadcast(self, room, event, data, exclude=None):
        """
        Deliver an outbound event to every connection in ``room``.

        ``exclude`` names a connection that should not receive it, typically
        the sender of a typing indicator.
        """
        await self.channel_layer.group_send(
            group_name(room),
            {
                "type": ROOM_EVENT,
                "room": room,
                "event": event,
                "data": data,
                "exclude": exclude,
            },
        )


room_manager = RoomManager()
