import logging
from typing import List, Tuple

import bleach
from django.conf import settings
from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone

from users.models import User

from .exceptions import AuthorizationError, NotFoundError, PersistenceError, ValidationError
from .models import Conversation, Message, Participant

logger = logging.getLogger(__name__)

MESSAGE_TYPES = {choice for choice, _ in Message.TYPE_CHOICES}


def sanitize_content(content):
    """Strip every tag and attribute from message text"""
    return bleach.clean(content, tags=[], attributes={}, strip=True)


class ConversationService:
    """
    Service layer for conversations and messages.

    Both the WebSocket dispatcher and the HTTP views go through these methods
    so that authorization, persistence and read-receipt rules stay identical
    on every entry point. All writes run in a single transaction per logical
    operation; callers broadcast only after the method has returned.
    """

    # Membership

    @staticmethod
    def is_participant(conversation_id, user_id) -> bool:
        return Participant.objects.filter(
            conversation_id=conversation_id, user_id=user_id
        ).exists()

    @staticmethod
    def require_participant(conversation_id, user_id):
        if not ConversationService.is_participant(conversation_id, user_id):
            raise AuthorizationError("Not part of this conversation")

    @staticmethod
    def get_participants(conversation_id, user_id) -> List[dict]:
        """
        Return ``[{id, name}]`` for every participant of the conversation.

        Raises:
            AuthorizationError: If ``user_id`` is not a participant
        """
        ConversationService.require_participant(conversation_id, user_id)
        memberships = (
            Participant.objects.filter(conversation_id=conversation_id)
            .select_related('user')
            .order_by('joined_at', 'id')
        )
        return [{'id': m.user_id, 'name': m.user.full_name} for m in memberships]

    @staticmethod
    def participant_ids(conversation_id) -> List[int]:
        return list(
            Participant.objects.filter(conversation_id=conversation_id)
            .order_by('user_id')
            .values_list('user_id', flat=True)
        )

    # Messages

    @staticmethod
    def _clean_content(content, message_type):
        if message_type not in MESSAGE_TYPES:
            raise ValidationError("Unsupported message type")

        if not isinstance(content, str) or not content.strip():
            raise ValidationError("Message content required")

        content = content.strip()
        max_length = getattr(settings, 'CHAT_MESSAGE_MAX_LENGTH', 10000)
        if len(content) > max_length:
            raise ValidationError("Message too long")

        if message_type == Message.TYPE_TEXT:
            content = sanitize_content(content)
            if not content:
                raise ValidationError("Message content required")
        return content

    @staticmethod
    def send_message(conversation_id, sender_id, content, message_type=Message.TYPE_TEXT) -> Message:
        """
        Persist a new message from ``sender_id``.

        For direct conversations the receiver is the other participant; group
        messages carry no receiver.

        Returns:
            The stored message with sender and receiver loaded

        Raises:
            ValidationError: Bad content or type
            AuthorizationError: Sender is not a participant
            NotFoundError: Conversation does not exist
            PersistenceError: The transaction failed and was rolled back
        """
        ConversationService.require_participant(conversation_id, sender_id)
        content = ConversationService._clean_content(content, message_type)

        try:
            with transaction.atomic():
                try:
                    conversation = Conversation.objects.select_for_update().get(pk=conversation_id)
                except Conversation.DoesNotExist:
                    raise NotFoundError("Conversation not found")

                receiver_id = None
                if conversation.is_direct:
                    receiver_id = (
                        Participant.objects.filter(conversation_id=conversation_id)
                        .exclude(user_id=sender_id)
                        .values_list('user_id', flat=True)
                        .first()
                    )

                message = Message.objects.create(
                    conversation=conversation,
                    sender_id=sender_id,
                    receiver_id=receiver_id,
                    content=content,
                    type=message_type,
                    is_read=False,
                )

                conversation.last_message_at = message.created_at
                conversation.save(update_fields=['last_message_at', 'updated_at'])
        except DatabaseError as e:
            logger.exception("Failed to store message in conversation %s", conversation_id)
            raise PersistenceError("Failed to send message") from e

        return Message.objects.select_related('sender', 'receiver').get(pk=message.pk)

    @staticmethod
    def mark_messages_read(conversation_id, user_id) -> List[int]:
        """
        Mark every unread message addressed to ``user_id`` in the conversation
        as read.

        Only messages where the caller is the receiver and not the sender are
        touched, so calling this twice in a row returns an empty list the
        second time.

        Returns:
            Ids of the messages flipped to read, in creation order
        """
        try:
            with transaction.atomic():
                message_ids = list(
                    Message.objects.select_for_update()
                    .filter(
                        conversation_id=conversation_id,
                        receiver_id=user_id,
                        is_read=False,
                    )
                    .exclude(sender_id=user_id)
                    .order_by('created_at', 'id')
                    .values_list('id', flat=True)
                )
                if message_ids:
                    Message.objects.filter(id__in=message_ids).update(
                        is_read=True, updated_at=timezone.now()
                    )
        except DatabaseError as e:
            logger.exception("Failed to mark messages read in conversation %s", conversation_id)
            raise PersistenceError("Failed to mark messages as read") from e

        return message_ids

    @staticmethod
    def get_history(conversation_id, user_id) -> Tuple[List[Message], List[int]]:
        """
        Return the conversation's messages oldest first, after marking unread
        messages addressed to ``user_id`` as read.

        Returns:
            ``(messages, read_message_ids)``
        """
        ConversationService.require_participant(conversation_id, user_id)

        read_ids = ConversationService.mark_messages_read(conversation_id, user_id)

        messages = list(
            Message.objects.filter(conversation_id=conversation_id)
            .select_related('sender', 'receiver')
            .order_by('created_at', 'id')
        )
        return messages, read_ids

    @staticmethod
    def _get_own_message(message_id, user_id, conversation_id=None) -> Message:
        queryset = Message.objects.select_for_update()
        if conversation_id is not None:
            queryset = queryset.filter(conversation_id=conversation_id)

        try:
            message = queryset.get(pk=message_id)
        except (Message.DoesNotExist, ValueError, TypeError):
            raise NotFoundError("Message not found")

        if message.sender_id != user_id:
            raise AuthorizationError("Not your message")
        return message

    @staticmethod
    def edit_message(message_id, user_id, content, conversation_id=None) -> Message:
        """
        Replace the content of one of the caller's own messages.

        Raises:
            NotFoundError: Unknown message, or not in ``conversation_id``
            AuthorizationError: Caller is not the sender
            ValidationError: Message was deleted, or content is empty
        """
        try:
            with transaction.atomic():
                message = ConversationService._get_own_message(message_id, user_id, conversation_id)
                if message.is_deleted:
                    raise ValidationError("Message deleted")

                message.content = ConversationService._clean_content(content, message.type)
                message.is_edited = True
                message.save(update_fields=['content', 'is_edited', 'updated_at'])
        except DatabaseError as e:
            logger.exception("Failed to edit message %s", message_id)
            raise PersistenceError("Failed to edit message") from e
        return message

    @staticmethod
    def delete_message(message_id, user_id, conversation_id=None) -> Message:
        """
        Soft delete one of the caller's own messages, clearing its content.

        Raises:
            NotFoundError: Unknown message, or not in ``conversation_id``
            AuthorizationError: Caller is not the sender
            ValidationError: Message was already deleted
        """
        try:
            with transaction.atomic():
                message = ConversationService._get_own_message(message_id, user_id, conversation_id)
                if message.is_deleted:
                    raise ValidationError("Message already deleted")

                message.is_deleted = True
                message.content = None
                message.save(update_fields=['is_deleted', 'content', 'updated_at'])
        except DatabaseError as e:
            logger.exception("Failed to delete message %s", message_id)
            raise PersistenceError("Failed to delete message") from e
        return message

    @staticmethod
    def unread_count(user_id, conversation_id=None) -> int:
        """
        Count unread, non-deleted messages addressed to ``user_id``, across all
        conversations or within ``conversation_id`` only.

        Raises:
            AuthorizationError: ``conversation_id`` is given and the user is not a participant
        """
        queryset = Message.objects.filter(receiver_id=user_id, is_read=False, is_deleted=False)
        if conversation_id is not None:
            ConversationService.require_participant(conversation_id, user_id)
            queryset = queryset.filter(conversation_id=conversation_id)
        return queryset.count()

    # Conversations

    @staticmethod
    def list_conversations(user_id):
        return (
            Conversation.objects.filter(memberships__user_id=user_id)
            .prefetch_related('participants')
            .order_by('-updated_at')
            .distinct()
        )

    @staticmethod
    def get_conversation(conversation_id) -> Conversation:
        try:
            return Conversation.objects.prefetch_related('participants').get(pk=conversation_id)
        except Conversation.DoesNotExist:
            raise NotFoundError("Conversation not found")

    @staticmethod
    def _find_direct(direct_key):
        return Conversation.objects.filter(direct_key=direct_key).first()

    @staticmethod
    def get_or_create_direct(user_id, recipient_id) -> Tuple[Conversation, bool]:
        """
        Return the direct conversation between the two users, creating it
        when it does not exist yet.

        Returns:
            ``(conversation, created)``
        """
        if int(user_id) == int(recipient_id):
            raise ValidationError("Cannot chat with yourself")

        if not User.objects.filter(pk=recipient_id).exists():
            raise NotFoundError("User not found")

        direct_key = Conversation.make_direct_key(user_id, recipient_id)
        existing = ConversationService._find_direct(direct_key)
        if existing:
            return existing, False

        try:
            with transaction.atomic():
                conversation = Conversation.objects.create(
                    type=Conversation.TYPE_DIRECT, direct_key=direct_key, created_by_id=user_id
                )
                Participant.objects.bulk_create([
                    Participant(conversation=conversation, user_id=user_id),
                    Participant(conversation=conversation, user_id=recipient_id),
                ])
        except IntegrityError:
            # Another request created the pair's conversation first
            existing = ConversationService._find_direct(direct_key)
            if existing is None:
                raise PersistenceError("Failed to get private chat")
            return existing, False
        except DatabaseError as e:
            logger.exception("Failed to open direct chat between %s and %s", user_id, recipient_id)
            raise PersistenceError("Failed to get private chat") from e

        return conversation, True

    @staticmethod
    def create_group(creator_id, name, participant_ids) -> Conversation:
        """
        Create a group conversation. The creator is always a member and a
        group needs at least three members in total.
        """
        name = (name or "").strip()
        if not name or not isinstance(participant_ids, (list, tuple)) or len(participant_ids) < 2:
            raise ValidationError("Name and at least 2 participants required")

        try:
            member_ids = list(dict.fromkeys([int(creator_id)] + [int(pk) for pk in participant_ids]))
        except (TypeError, ValueError):
            raise ValidationError("Participant ids must be integers")

        if len(member_ids) < 3:
            raise ValidationError("Group must have at least 3 members (including you)")

        known = set(User.objects.filter(pk__in=member_ids).values_list('id', flat=True))
        missing = [pk for pk in member_ids if pk not in known]
        if missing:
            raise ValidationError(f"Unknown users: {', '.join(str(pk) for pk in missing)}")

        try:
            with transaction.atomic():
                conversation = Conversation.objects.create(
                    type=Conversation.TYPE_GROUP, name=name, created_by_id=creator_id
                )
                Participant.objects.bulk_create([
                    Participant(conversation=conversation, user_id=pk) for pk in member_ids
                ])
        except DatabaseError as e:
            logger.exception("Failed to create group %r", name)
            raise PersistenceError("Failed to create group") from e

        return conversation

    @staticmethod
    def _get_group(conversation_id) -> Conversation:
        conversation = ConversationService.get_conversation(conversation_id)
        if conversation.type != Conversation.TYPE_GROUP:
            raise ValidationError("Not a group")
        return conversation

    @staticmethod
    def add_member(conversation_id, actor_id, user_id) -> Participant:
        conversation = ConversationService._get_group(conversation_id)
        ConversationService.require_participant(conversation.id, actor_id)

        if not User.objects.filter(pk=user_id).exists():
            raise NotFoundError("User not found")
        if ConversationService.is_participant(conversation.id, user_id):
            raise ValidationError("User already in group")

        try:
            return Participant.objects.create(conversation=conversation, user_id=user_id)
        except DatabaseError as e:
            logger.exception("Failed to add user %s to group %s", user_id, conversation_id)
            raise PersistenceError("Failed to add member") from e

    @staticmethod
    def remove_member(conversation_id, actor_id, member_id):
        conversation = ConversationService._get_group(conversation_id)
        if conversation.created_by_id != actor_id:
            raise AuthorizationError("Only the group creator can remove members")

        deleted, _ = Participant.objects.filter(
            conversation_id=conversation.id, user_id=member_id
        ).delete()
        if not deleted:
            raise NotFoundError("Member not in group")

    @staticmethod
    def leave_conversation(conversation_id, user_id):
        conversation = ConversationService.get_conversation(conversation_id)
        if conversation.is_direct:
            raise ValidationError("Cannot leave a direct conversation")

        deleted, _ = Participant.objects.filter(
            conversation_id=conversation_id, user_id=user_id
        ).delete()
        if not deleted:
            raise NotFoundError("Not in conversation")

    @staticmethod
    def delete_group(conversation_id, user_id) -> str:
        """Delete a group conversation and return its room key."""
        conversation = ConversationService._get_group(conversation_id)
        if conversation.created_by_id != user_id:
            raise AuthorizationError("Only the group creator can delete the group")

        room = conversation.room
        conversation.delete()
        return room
