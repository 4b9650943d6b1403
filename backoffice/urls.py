"""
URL configuration for the backoffice project.

HTTP routes only; the WebSocket routes live in websocket_chat.routing.
"""
from django.contrib import admin
from django.urls import include, path

from . import views

urlpatterns = [
    path('admin/', admin.site.urls),
    path('ping/', views.PingView.as_view(), name='ping'),
    path('api/users/', include('users.urls')),
    path('api/messaging/', include('conversations.urls')),
]
