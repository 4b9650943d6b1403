from django.db import models

from users.models import User


class Conversation(models.Model):
    TYPE_DIRECT = "direct"
    TYPE_GROUP = "group"
    TYPE_CHOICES = [
        (TYPE_DIRECT, "Direct"),
        (TYPE_GROUP, "Group"),
    ]

    type = models.CharField(max_length=10, choices=TYPE_CHOICES, default=TYPE_DIRECT)
    name = models.CharField(max_length=255, null=True, blank=True)
    # "<low user id>:<high user id>" for direct conversations, null for groups
    direct_key = models.CharField(max_length=64, unique=True, null=True, blank=True)
    created_by = models.ForeignKey(
        User, on_delete=models.SET_NULL, related_name="created_conversations", null=True, blank=True
    )
    participants = models.ManyToManyField(
        User, through="Participant", related_name="conversations"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    last_message_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'conversations_conversation'
        ordering = ['-updated_at']

    def __str__(self):
        if self.name:
            return f"Conversation {self.id} ({self.name})"
        return f"Conversation {self.id}"

    @property
    def is_direct(self):
        return self.type == self.TYPE_DIRECT

    @property
    def room(self):
        return f"conversation:{self.id}"

    @staticmethod
    def make_direct_key(user_id, other_id):
        low, high = sorted((int(user_id), int(other_id)))
        return f"{low}:{high}"


class Participant(models.Model):
    conversation = models.ForeignKey(
        Conversation, on_delete=models.CASCADE, related_name="memberships"
    )
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name="memberships")
    joined_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'conversations_participant'
        unique_together = [('conversation', 'user')]

    def __str__(self):
        return f"User {self.user_id} in conversation {self.conversation_id}"


class Message(models.Model):
    TYPE_TEXT = "text"
    TYPE_IMAGE = "image"
    TYPE_FILE = "file"
    TYPE_CHOICES = [
        (TYPE_TEXT, "Text"),
        (TYPE_IMAGE, "Image"),
        (TYPE_FILE, "File"),
    ]

    conversation = models.ForeignKey(Conversation, on_delete=models.CASCADE, related_name='messages')
    sender = models.ForeignKey(User, on_delete=models.CASCADE, related_name='sent_messages')
    # Only populated for direct conversations
    receiver = models.ForeignKey(
        User, on_delete=models.SET_NULL, related_name='received_messages', null=True, blank=True
    )
    content = models.TextField(null=True, blank=True)
    type = models.CharField(max_length=10, choices=TYPE_CHOICES, default=TYPE_TEXT)
    is_read = models.BooleanField(default=False)
    is_edited = models.BooleanField(default=False)
    is_deleted = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'conversations_message'
        ordering = ['created_at', 'id']
        indexes = [
            models.Index(fields=['conversation', 'created_at']),
            models.Index(fields=['receiver', 'is_read']),
        ]

    def __str__(self):
        preview = (self.content or "")[:50]
        return f"{self.sender_id}: {preview}..."
