from django.urls import path

from . import views

app_name = 'conversations'

urlpatterns = [
    path('conversations/', views.ConversationListView.as_view(), name='conversation-list'),
    path('direct/<int:recipient_id>/', views.DirectConversationView.as_view(), name='direct'),
    path('group/', views.GroupCreateView.as_view(), name='group-create'),
    path('group/<int:conversation_id>/', views.GroupDeleteView.as_view(), name='group-delete'),
    path('group/<int:conversation_id>/member/', views.GroupMemberAddView.as_view(), name='group-member-add'),
    path(
        'group/<int:conversation_id>/member/<int:member_id>/',
        views.GroupMemberRemoveView.as_view(),
        name='group-member-remove',
    ),
    path('conversation/<int:conversation_id>/', views.LeaveConversationView.as_view(), name='conversation-leave'),
    path('<int:conversation_id>/message/', views.MessageCreateView.as_view(), name='message-create'),
    path('<int:conversation_id>/messages/', views.MessageHistoryView.as_view(), name='message-history'),
    path('message/<int:message_id>/', views.MessageDetailView.as_view(), name='message-detail'),
    path('unread-count/', views.UnreadCountView.as_view(), name='unread-count'),
    path(
        '<int:conversation_id>/unread-count/',
        views.UnreadCountView.as_view(),
        name='conversation-unread-count',
    ),
]
