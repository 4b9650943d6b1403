from users.models import Permission, Role, User

MESSAGING = (
    'message:read',
    'message:create',
    'message:update',
    'message:delete',
    'message:manage',
)


def create_role(name, permission_names=()):
    role = Role.objects.create(name=name)
    for permission_name in permission_names:
        permission, _ = Permission.objects.get_or_create(name=permission_name)
        role.permissions.add(permission)
    return role


def create_user(first_name, last_name="Tester", email=None, role=None):
    return User.objects.create(
        first_name=first_name,
        last_name=last_name,
        email=email or f"{first_name.lower()}@example.com",
        role=role,
    )
