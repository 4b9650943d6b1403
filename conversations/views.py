import logging

from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from backoffice.permissions import Capability, require_capability
from websocket_chat import broadcasts

from .exceptions import (
    AuthenticationError,
    AuthorizationError,
    ChatError,
    NotFoundError,
    PersistenceError,
)
from .serializers import (
    ConversationSerializer,
    GroupCreateSerializer,
    MemberAddSerializer,
    MessageCreateSerializer,
    MessageEditSerializer,
    MessageSerializer,
    serialize_message,
)
from .services import ConversationService

logger = logging.getLogger(__name__)


class ChatAPIView(APIView):
    """
    Base view that turns conversation-layer errors into ``{"error": ...}``
    responses. Broadcasts are sent only once the service call has returned.
    """

    error_statuses = (
        (AuthenticationError, status.HTTP_401_UNAUTHORIZED),
        (AuthorizationError, status.HTTP_403_FORBIDDEN),
        (NotFoundError, status.HTTP_404_NOT_FOUND),
        (PersistenceError, status.HTTP_500_INTERNAL_SERVER_ERROR),
    )

    def handle_exception(self, exc):
        if isinstance(exc, ChatError):
            for error_class, status_code in self.error_statuses:
                if isinstance(exc, error_class):
                    break
            else:
                status_code = status.HTTP_400_BAD_REQUEST
            return Response({'error': exc.message}, status=status_code)
        return super().handle_exception(exc)

    def validation_error(self, serializer):
        return Response({'error': serializer.errors}, status=status.HTTP_400_BAD_REQUEST)


def serialize_conversation(conversation):
    conversation = ConversationService.get_conversation(conversation.id)
    return ConversationSerializer(conversation).data


class DirectConversationView(ChatAPIView):
    permission_classes = [require_capability(Capability.MESSAGE_READ)]

    def post(self, request, recipient_id):
        """Get or create the direct conversation with ``recipient_id``"""
        conversation, created = ConversationService.get_or_create_direct(request.user.id, recipient_id)
        return Response(
            serialize_conversation(conversation),
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )


class GroupCreateView(ChatAPIView):
    permission_classes = [require_capability(Capability.MESSAGE_CREATE)]

    def post(self, request):
        serializer = GroupCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return self.validation_error(serializer)

        conversation = ConversationService.create_group(
            request.user.id,
            serializer.validated_data['name'],
            serializer.validated_data['participantIds'],
        )
        data = serialize_conversation(conversation)
        broadcasts.conversation_created_sync(data, ConversationService.participant_ids(conversation.id))
        logger.info("User %s created group %s", request.user.id, conversation.id)
        return Response(data, status=status.HTTP_201_CREATED)


class ConversationListView(ChatAPIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        conversations = ConversationService.list_conversations(request.user.id)
        return Response(ConversationSerializer(conversations, many=True).data)


class MessageCreateView(ChatAPIView):
    permission_classes = [require_capability(Capability.MESSAGE_CREATE)]

    def post(self, request, conversation_id):
        serializer = MessageCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return self.validation_error(serializer)

        message = ConversationService.send_message(
            conversation_id,
            request.user.id,
            serializer.validated_data['content'],
            serializer.validated_data['type'],
        )
        data = serialize_message(message)
        broadcasts.new_message_sync(data)
        return Response(data, status=status.HTTP_201_CREATED)


class MessageHistoryView(ChatAPIView):
    permission_classes = [require_capability(Capability.MESSAGE_READ)]

    def get(self, request, conversation_id):
        """Return the history oldest first, marking the caller's unread messages read"""
        messages, read_ids = ConversationService.get_history(conversation_id, request.user.id)
        broadcasts.messages_read_sync(conversation_id, request.user.id, request.auth.name, read_ids)
        return Response(MessageSerializer(messages, many=True).data)


class MessageDetailView(ChatAPIView):

    def get_permissions(self):
        if self.request.method == 'DELETE':
            return [require_capability(Capability.MESSAGE_DELETE)()]
        return [require_capability(Capability.MESSAGE_UPDATE)()]

    def put(self, request, message_id):
        serializer = MessageEditSerializer(data=request.data)
        if not serializer.is_valid():
            return self.validation_error(serializer)

        message = ConversationService.edit_message(
            message_id, request.user.id, serializer.validated_data['content']
        )
        broadcasts.message_updated_sync(message)
        return Response(MessageSerializer(message).data)

    def delete(self, request, message_id):
        message = ConversationService.delete_message(message_id, request.user.id)
        broadcasts.message_deleted_sync(message)
        return Response({'message': 'Message deleted', 'messageId': message.id})


class UnreadCountView(ChatAPIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, conversation_id=None):
        """Total unread count, or the count for one conversation the caller is in"""
        count = ConversationService.unread_count(request.user.id, conversation_id)
        if conversation_id is None:
            return Response({'count': count})
        return Response({'conversationId': conversation_id, 'count': count})


class GroupMemberAddView(ChatAPIView):
    permission_classes = [require_capability(Capability.MESSAGE_MANAGE)]

    def post(self, request, conversation_id):
        serializer = MemberAddSerializer(data=request.data)
        if not serializer.is_valid():
            return self.validation_error(serializer)

        user_id = serializer.validated_data['userId']
        ConversationService.add_member(conversation_id, request.user.id, user_id)
        broadcasts.participant_added_sync(conversation_id, user_id)
        return Response({'message': 'Member added', 'userId': user_id}, status=status.HTTP_201_CREATED)


class GroupMemberRemoveView(ChatAPIView):
    permission_classes = [require_capability(Capability.MESSAGE_MANAGE)]

    def delete(self, request, conversation_id, member_id):
        ConversationService.remove_member(conversation_id, request.user.id, member_id)
        broadcasts.participant_removed_sync(conversation_id, member_id)
        return Response({'message': 'Member removed', 'userId': member_id})


class LeaveConversationView(ChatAPIView):
    permission_classes = [IsAuthenticated]

    def delete(self, request, conversation_id):
        ConversationService.leave_conversation(conversation_id, request.user.id)
        broadcasts.participant_removed_sync(conversation_id, request.user.id)
        return Response({'message': 'Left conversation'})


class GroupDeleteView(ChatAPIView):
    permission_classes = [IsAuthenticated]

    def delete(self, request, conversation_id):
        room = ConversationService.delete_group(conversation_id, request.user.id)
        broadcasts.conversation_deleted_sync(room, conversation_id)
        return Response({'message': 'Group deleted'})
