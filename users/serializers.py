from rest_framework import serializers

from .models import User


class UserSummarySerializer(serializers.ModelSerializer):
    firstName = serializers.CharField(source='first_name', read_only=True)
    lastName = serializers.CharField(source='last_name', read_only=True)
    fullName = serializers.CharField(source='full_name', read_only=True)

    class Meta:
        model = User
        fields = ['id', 'firstName', 'lastName', 'email', 'fullName']
        read_only_fields = fields


class CurrentUserSerializer(UserSummarySerializer):
    role = serializers.SerializerMethodField()
    permissions = serializers.SerializerMethodField()

    class Meta(UserSummarySerializer.Meta):
        fields = UserSummarySerializer.Meta.fields + ['role', 'permissions']
        read_only_fields = fields

    def get_role(self, obj):
        identity = self.context.get('identity')
        return identity.role if identity else None

    def get_permissions(self, obj):
        identity = self.context.get('identity')
        if not identity:
            return []
        return sorted(capability.value for capability in identity.permissions)
