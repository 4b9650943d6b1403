from django.urls import path

from .views import CurrentUserView, UserSearchView

app_name = "users"

urlpatterns = [
    path("me/", CurrentUserView.as_view(), name="current-user"),
    path("search/", UserSearchView.as_view(), name="user-search"),
]
