from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("groups", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Project",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("title", models.CharField(max_length=200)),
                ("domain", models.CharField(blank=True, max_length=120)),
                ("semester", models.PositiveSmallIntegerField(db_index=True)),
                ("academic_year", models.CharField(db_index=True, max_length=9)),
                ("current_preference_index", models.PositiveSmallIntegerField(default=0)),
                ("allocation_status", models.CharField(choices=[("pending", "Pending"), ("allocated", "Allocated"), ("exhausted", "Exhausted"), ("manually_allocated", "Manually allocated")], db_index=True, default="pending", max_length=24)),
                ("allocated_by", models.CharField(blank=True, choices=[("faculty_choice", "Faculty choice"), ("admin_allocation", "Admin allocation")], max_length=24, null=True)),
                ("allocated_at", models.DateTimeField(blank=True, null=True)),
                ("cursor_advanced_at", models.DateTimeField(blank=True, null=True)),
                ("allocated_by_admin", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="manual_allocations", to=settings.AUTH_USER_MODEL)),
                ("allocated_faculty", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="allocated_projects", to=settings.AUTH_USER_MODEL)),
                ("group", models.OneToOneField(on_delete=django.db.models.deletion.PROTECT, related_name="project", to="groups.group")),
                ("registered_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="registered_projects", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["-created_at", "-id"],
            },
        ),
        migrations.CreateModel(
            name="FacultyPreference",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("rank", models.PositiveSmallIntegerField()),
                ("faculty", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="project_preferences", to=settings.AUTH_USER_MODEL)),
                ("project", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="preferences", to="projects.project")),
            ],
            options={
                "ordering": ["rank", "id"],
                "constraints": [
                    models.UniqueConstraint(fields=("project", "rank"), name="unique_project_rank"),
                    models.UniqueConstraint(fields=("project", "faculty"), name="unique_project_faculty"),
                ],
            },
        ),
        migrations.CreateModel(
            name="AllocationDecision",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("rank", models.PositiveSmallIntegerField()),
                ("decision", models.CharField(choices=[("chosen", "Chosen"), ("passed", "Passed")], max_length=16)),
                ("comments", models.TextField(blank=True)),
                ("decided_at", models.DateTimeField(auto_now_add=True)),
                ("faculty", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="allocation_decisions", to=settings.AUTH_USER_MODEL)),
                ("project", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="decisions", to="projects.project")),
            ],
            options={
                "ordering": ["decided_at", "id"],
            },
        ),
    ]
