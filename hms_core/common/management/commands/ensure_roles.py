# hms_core/common/management/commands/ensure_roles.py

from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.core.management.base import BaseCommand, CommandError

from hms_core.common.permissions import ALL_ROLES, ROLE_ADMIN


class Command(BaseCommand):
    help = "Ensure default role groups exist (idempotent). Optionally grant ADMIN to a user."

    def add_arguments(self, parser):
        parser.add_argument("--admin-user", dest="admin_user", default=None, help="Username to add to ADMIN.")

    def handle(self, *args, **options):
        created = 0
        for name in ALL_ROLES:
            _, was_created = Group.objects.get_or_create(name=name)
            created += 1 if was_created else 0

        self.stdout.write(self.style.SUCCESS(f"Roles ensured. Newly created: {created}"))

        username = options.get("admin_user")
        if username:
            User = get_user_model()
            try:
                user = User.objects.get(**{User.USERNAME_FIELD: username})
            except User.DoesNotExist:
                raise CommandError(f"User '{username}' does not exist.")
            user.groups.add(Group.objects.get(name=ROLE_ADMIN))
            self.stdout.write(self.style.SUCCESS(f"Added {username} to {ROLE_ADMIN}."))
