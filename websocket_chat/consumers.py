import json
import logging

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncWebsocketConsumer
from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder

from backoffice.permissions import Capability, allowed
from conversations.exceptions import AuthorizationError, ChatError, PersistenceError, ValidationError
from conversations.models import Message
from conversations.serializers import serialize_message
from conversations.services import ConversationService

from . import broadcasts
from .middleware import AUTH_FAILED_CLOSE_CODE
from .rooms import conversation_room, room_manager, user_room

logger = logging.getLogger(__name__)


def require_id(data, key):
    value = data.get(key)
    if isinstance(value, bool):
        raise ValidationError(f"{key} required")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{key} required")


class ChatConsumer(AsyncWebsocketConsumer):
    """
    WebSocket consumer dispatching real-time conversation events.

    Frames are JSON objects ``{"event": <name>, "data": {...}}`` in both
    directions. Channels hands a consumer its frames one at a time, so every
    event from a connection is fully applied (committed and broadcast) before
    the next one is read. Errors raised by a handler are reported to this
    connection only as an ``error`` event and never close the socket.
    """

    handlers = {
        'joinConversation': 'handle_join_conversation',
        'leaveConversation': 'handle_leave_conversation',
        'sendMessage': 'handle_send_message',
        'typing': 'handle_typing',
        'markMessagesRead': 'handle_mark_messages_read',
        'updateMessage': 'handle_update_message',
        'deleteMessage': 'handle_delete_message',
    }

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.identity = None

    async def connect(self):
        """Join the caller's personal room and accept the connection"""
        self.identity = self.scope.get('identity')
        if self.identity is None:
            await self.close(code=AUTH_FAILED_CLOSE_CODE)
            return

        await room_manager.add(user_room(self.identity.id), self.channel_name)
        await self.accept()
        logger.info("User %s connected on %s", self.identity.name, self.channel_name)

    async def disconnect(self, code):
        """Release every room membership held by this connection"""
        if self.identity is None:
            return
        await room_manager.discard_all(self.channel_name)
        logger.info("User %s disconnected (code %s)", self.identity.name, code)

    async def receive(self, text_data=None, bytes_data=None):
        if text_data is None:
            await self.send_error("Binary frames are not supported")
            return

        if len(text_data) > getattr(settings, 'WEBSOCKET_MAX_MESSAGE_SIZE', 64 * 1024):
            await self.send_error("Message too large")
            return

        try:
            frame = json.loads(text_data)
        except json.JSONDecodeError:
            await self.send_error("Invalid JSON format")
            return

        if not isinstance(frame, dict):
            await self.send_error("Invalid frame")
            return

        event = frame.get('event')
        data = frame.get('data') or {}
        handler_name = self.handlers.get(event)
        if handler_name is None:
            await self.send_error("Unknown event")
            return
        if not isinstance(data, dict):
            await self.send_error("Invalid payload")
            return

        try:
            await getattr(self, handler_name)(data)
        except ChatError as e:
            await self.send_error(e.message)
        except Exception:
            logger.exception("Unhandled error while processing %s from user %s", event, self.identity.id)
            await self.send_error("Internal server error")

    # Inbound events

    async def handle_join_conversation(self, data):
        conversation_id = require_id(data, 'conversationId')
        participants = await self.get_participants(conversation_id)
        await room_manager.add(conversation_room(conversation_id), self.channel_name)
        await self.send_event('participants', participants)

    async def handle_leave_conversation(self, data):
        conversation_id = require_id(data, 'conversationId')
        await room_manager.discard(conversation_room(conversation_id), self.channel_name)

    async def handle_send_message(self, data):
        if not allowed(self.identity.role, self.identity.permissions, Capability.MESSAGE_CREATE):
            raise AuthorizationError("Insufficient permissions")

        conversation_id = require_id(data, 'conversationId')
        message_data = await self.store_message(
            conversation_id,
            data.get('content'),
            data.get('type') or Message.TYPE_TEXT,
        )
        await broadcasts.new_message(message_data)

    async def handle_typing(self, data):
        conversation_id = require_id(data, 'conversationId')
        is_typing = data.get('isTyping', True)
        if not isinstance(is_typing, bool):
            raise ValidationError("isTyping must be a boolean")

        room = conversation_room(conversation_id)
        if not room_manager.is_member(room, self.channel_name):
            return

        await room_manager.broadcast(
            room,
            'userTyping',
            {
                'userId': self.identity.id,
                'userName': self.identity.name,
                'isTyping': is_typing,
            },
            exclude=self.channel_name,
        )

    async def handle_mark_messages_read(self, data):
        conversation_id = require_id(data, 'conversationId')
        try:
            message_ids = await self.mark_read(conversation_id)
        except PersistenceError:
            # Already logged by the service; read receipts are best effort
            return

        await broadcasts.messages_read(
            conversation_id, self.identity.id, self.identity.name, message_ids
        )

    async def handle_update_message(self, data):
        message_id = require_id(data, 'messageId')
        conversation_id = data.get('conversationId')
        if conversation_id is not None:
            conversation_id = require_id(data, 'conversationId')

        message = await self.edit_message(message_id, data.get('content'), conversation_id)
        await broadcasts.message_updated(message)

    async def handle_delete_message(self, data):
        message_id = require_id(data, 'messageId')
        conversation_id = data.get('conversationId')
        if conversation_id is not None:
            conversation_id = require_id(data, 'conversationId')

        message = await self.remove_message(message_id, conversation_id)
        await broadcasts.message_deleted(message)

    # Outbound events

    async def room_event(self, event):
        """
        Forward a room broadcast to this socket.

        A connection stops receiving a conversation room's traffic as soon as
        its user is removed from the conversation or the conversation is
        deleted; the triggering event itself is still delivered.
        """
        if event.get('exclude') == self.channel_name:
            return

        room = event.get('room')
        if room and self.is_removal(event):
            await room_manager.discard(room, self.channel_name)
        await self.send_event(event['event'], event['data'])

    def is_removal(self, event):
        if event['event'] == 'conversationDeleted':
            return True
        return (
            event['event'] == 'participantRemoved'
            and event['data'].get('userId') == self.identity.id
        )

    async def send_event(self, event, data):
        await self.send(text_data=json.dumps({'event': event, 'data': data}, cls=DjangoJSONEncoder))

    async def send_error(self, message):
        """Send error message to this client only"""
        await self.send_event('error', {'message': message})

    # Message store access

    @database_sync_to_async
    def get_participants(self, conversation_id):
        return ConversationService.get_participants(conversation_id, self.identity.id)

    @database_sync_to_async
    def store_message(self, conversation_id, content, message_type):
        message = ConversationService.send_message(
            conversation_id, self.identity.id, content, message_type
        )
        return serialize_message(message)

    @database_sync_to_async
    def mark_read(self, conversation_id):
        return ConversationService.mark_messages_read(conversation_id, self.identity.id)

    @database_sync_to_async
    def edit_message(self, message_id, content, conversation_id):
        return ConversationService.edit_message(message_id, self.identity.id, content, conversation_id)

    @database_sync_to_async
    def remove_message(self, message_id, conversation_id):
        return ConversationService.delete_message(message_id, self.identity.id, conversation_id)
