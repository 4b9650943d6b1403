from rest_framework import serializers

from users.serializers import UserSummarySerializer

from .models import Conversation, Message


class MessageSerializer(serializers.ModelSerializer):
    """Full message record with sender and receiver, as pushed over the socket"""
    conversationId = serializers.IntegerField(source='conversation_id', read_only=True)
    senderId = serializers.IntegerField(source='sender_id', read_only=True)
    receiverId = serializers.IntegerField(source='receiver_id', read_only=True, allow_null=True)
    isRead = serializers.BooleanField(source='is_read', read_only=True)
    isEdited = serializers.BooleanField(source='is_edited', read_only=True)
    isDeleted = serializers.BooleanField(source='is_deleted', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)
    sender = UserSummarySerializer(read_only=True)
    receiver = UserSummarySerializer(read_only=True, allow_null=True)

    class Meta:
        model = Message
        fields = [
            'id', 'conversationId', 'senderId', 'receiverId', 'content', 'type',
            'isRead', 'isEdited', 'isDeleted', 'createdAt', 'updatedAt', 'sender', 'receiver',
        ]
        read_only_fields = fields


class MessageCreateSerializer(serializers.Serializer):
    content = serializers.CharField(trim_whitespace=True, allow_blank=False)
    type = serializers.ChoiceField(choices=Message.TYPE_CHOICES, default=Message.TYPE_TEXT)


class MessageEditSerializer(serializers.Serializer):
    content = serializers.CharField(trim_whitespace=True, allow_blank=False)


class ConversationSerializer(serializers.ModelSerializer):
    createdBy = serializers.IntegerField(source='created_by_id', read_only=True, allow_null=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)
    lastMessageAt = serializers.DateTimeField(source='last_message_at', read_only=True, allow_null=True)
    participants = UserSummarySerializer(many=True, read_only=True)

    class Meta:
        model = Conversation
        fields = [
            'id', 'type', 'name', 'createdBy', 'createdAt', 'updatedAt', 'lastMessageAt', 'participants',
        ]
        read_only_fields = fields


class GroupCreateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    participantIds = serializers.ListField(child=serializers.IntegerField(), min_length=2)


class MemberAddSerializer(serializers.Serializer):
    userId = serializers.IntegerField()


def serialize_message(message):
    """Plain-dict form of a message, safe to put on the channel layer"""
    return dict(MessageSerializer(message).data)
