from django.core.management.base import BaseCommand

from apps.projects.allocation import allocation_summary, stalled_allocations


class Command(BaseCommand):
    help = "List pending allocations whose cursor has not moved for longer than a threshold"

    def add_arguments(self, parser):
        parser.add_argument(
            "--hours",
            type=int,
            default=72,
            help="Report cursors idle for at least this many hours (default: 72)",
        )

    def handle(self, *args, **options):
        hours = options["hours"]
        projects = list(stalled_allocations(hours * 3600))
        if not projects:
            self.stdout.write(self.style.SUCCESS(f"No allocations idle for {hours}h or more"))
            return

        for project in projects:
            summary = allocation_summary(project)
            idle_hours = (summary["seconds_since_cursor_advanced"] or 0) // 3600
            self.stdout.write(
                f"project={project.pk} group={project.group_id} "
                f"faculty={summary['current_faculty_id']} {summary['label']} idle={idle_hours}h"
            )
        self.stdout.write(self.style.WARNING(f"{len(projects)} stalled allocation(s)"))
