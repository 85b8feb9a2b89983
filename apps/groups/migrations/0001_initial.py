from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Group",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("name", models.CharField(blank=True, max_length=120)),
                ("semester", models.PositiveSmallIntegerField(db_index=True)),
                ("academic_year", models.CharField(db_index=True, max_length=9)),
                ("status", models.CharField(choices=[("forming", "Forming"), ("open", "Open"), ("finalized", "Finalized"), ("locked", "Locked"), ("disbanded", "Disbanded")], db_index=True, default="forming", max_length=16)),
                ("min_members", models.PositiveSmallIntegerField()),
                ("max_members", models.PositiveSmallIntegerField()),
                ("finalized_at", models.DateTimeField(blank=True, null=True)),
                ("locked_at", models.DateTimeField(blank=True, null=True)),
                ("disbanded_at", models.DateTimeField(blank=True, null=True)),
                ("leader", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="led_groups", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["-created_at", "id"],
                "indexes": [models.Index(fields=["semester", "status"], name="group_semester_status_idx")],
            },
        ),
        migrations.CreateModel(
            name="GroupMember",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("role", models.CharField(choices=[("leader", "Leader"), ("member", "Member")], default="member", max_length=16)),
                ("is_active", models.BooleanField(db_index=True, default=True)),
                ("joined_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("left_at", models.DateTimeField(blank=True, null=True)),
                ("group", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="members", to="groups.group")),
                ("student", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="group_memberships", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["joined_at", "id"],
                "constraints": [
                    models.UniqueConstraint(fields=("group", "student"), name="unique_group_student"),
                    models.UniqueConstraint(condition=models.Q(("is_active", True), ("role", "leader")), fields=("group",), name="one_active_leader_per_group"),
                ],
            },
        ),
    ]
