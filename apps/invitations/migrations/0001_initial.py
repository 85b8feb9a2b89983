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
            name="Invitation",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("proposed_role", models.CharField(choices=[("leader", "Leader"), ("member", "Member")], default="member", max_length=16)),
                ("status", models.CharField(choices=[("pending", "Pending"), ("accepted", "Accepted"), ("rejected", "Rejected"), ("auto_rejected", "Auto-rejected")], db_index=True, default="pending", max_length=16)),
                ("resolved_at", models.DateTimeField(blank=True, null=True)),
                ("resolution_code", models.CharField(blank=True, choices=[("group_finalized", "Group has been finalized"), ("group_full", "Group is now full"), ("group_disbanded", "Group has been disbanded"), ("joined_other_group", "Student joined another group")], max_length=32, null=True)),
                ("resolution_reason", models.CharField(blank=True, max_length=255, null=True)),
                ("group", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="invitations", to="groups.group")),
                ("invited_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="group_invitations_sent", to=settings.AUTH_USER_MODEL)),
                ("invitee", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="group_invitations", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["-created_at", "-id"],
                "constraints": [
                    models.UniqueConstraint(condition=models.Q(("status", "pending")), fields=("group", "invitee"), name="one_pending_invitation_per_pair"),
                ],
            },
        ),
    ]
