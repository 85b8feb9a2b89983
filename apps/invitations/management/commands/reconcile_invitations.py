from django.core.management.base import BaseCommand, CommandError

from apps.groups.models import Group
from apps.invitations.services import reconcile_stale_invitations


class Command(BaseCommand):
    help = "Auto-reject pending invitations whose group is finalized, locked, disbanded or full"

    def add_arguments(self, parser):
        parser.add_argument("--group", type=int, help="Only reconcile invitations of this group id")

    def handle(self, *args, **options):
        group = None
        if options.get("group"):
            group = Group.objects.filter(pk=options["group"]).first()
            if group is None:
                raise CommandError(f"Group {options['group']} does not exist")

        count = reconcile_stale_invitations(group=group)
        self.stdout.write(self.style.SUCCESS(f"Reconciled {count} stale invitation(s)"))
