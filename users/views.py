from django.db.models import Q
from rest_framework.generics import ListAPIView
from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response
from rest_framework.views import APIView

from .models import User
from .serializers import CurrentUserSerializer, UserSummarySerializer


class UserPagination(PageNumberPagination):
    page_size = 30
    page_size_query_param = "page_size"
    max_page_size = 100


class CurrentUserView(APIView):
    """Return the authenticated caller with role and permissions"""

    def get(self, request):
        serializer = CurrentUserSerializer(request.user, context={'identity': request.auth})
        return Response(serializer.data)


class UserSearchView(ListAPIView):
    serializer_class = UserSummarySerializer
    pagination_class = UserPagination

    def get_queryset(self):
        """
        Return users whose first name, last name or email contains the "q"
        parameter, excluding the caller. Queries shorter than 2 characters
        return nothing.
        """
        q = self.request.GET.get("q", "").strip()

        if not q or len(q) < 2:
            return User.objects.none()

        return (
            User.objects.filter(
                Q(first_name__icontains=q) | Q(last_name__icontains=q) | Q(email__icontains=q)
            )
            .exclude(pk=self.request.user.pk)
            .order_by("first_name", "last_name")
        )
