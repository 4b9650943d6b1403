"""
Outbound events shared by the WebSocket dispatcher and the HTTP views.

Every function here is called after the transaction behind it has committed.
HTTP views call the ``*_sync`` wrappers.
"""

from asgiref.sync import async_to_sync

from .rooms import conversation_room, room_manager, user_room


async def new_message(message_data):
    """Push a stored message to its room and notify the receiver's personal room."""
    conversation_id = message_data["conversationId"]
    await room_manager.broadcast(conversation_room(conversation_id), "newMessage", message_data)

    receiver_id = message_data.get("receiverId")
    if receiver_id:
        await room_manager.broadcast(
            user_room(receiver_id),
            "newMessageNotification",
            {"conversationId": conversation_id, "message": message_data},
        )


async def messages_read(conversation_id, user_id, user_name, message_ids):
    if not message_ids:
        return
    await room_manager.broadcast(
        conversation_room(conversation_id),
        "messagesRead",
        {"userId": user_id, "userName": user_name, "messageIds": list(message_ids)},
    )


async def message_updated(message):
    await room_manager.broadcast(
        conversation_room(message.conversation_id),
        "messageUpdated",
        {"messageId": message.id, "content": message.content, "isEdited": message.is_edited},
    )


async def message_deleted(message):
    await room_manager.broadcast(
        conversation_room(message.conversation_id),
        "messageDeleted",
        {"messageId": message.id},
    )


async def participant_added(conversation_id, user_id):
    await room_manager.broadcast(
        conversation_room(conversation_id), "participantAdded", {"userId": user_id}
    )


async def participant_removed(conversation_id, user_id):
    await room_manager.broadcast(
        conversation_room(conversation_id), "participantRemoved", {"userId": user_id}
    )


async def conversation_created(conversation_data, member_ids):
    for member_id in member_ids:
        await room_manager.broadcast(user_room(member_id), "conversationCreated", conversation_data)


async def conversation_deleted(room, conversation_id):
    await room_manager.broadcast(room, "conversationDeleted", {"conversationId": conversation_id})


new_message_sync = async_to_sync(new_message)
messages_read_sync = async_to_sync(messages_read)
message_updated_sync = async_to_sync(message_updated)
message_deleted_sync = async_to_sync(message_deleted)
participant_added_sync = async_to_sync(participant_added)
participant_removed_sync = async_to_sync(participant_removed)
conversation_created_sync = async_to_sync(conversation_created)
conversation_deleted_sync = async_to_sync(conversation_deleted)
