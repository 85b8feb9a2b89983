from django.apps import AppConfig


class SemestersConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.semesters"
    verbose_name = "Semester configuration"
