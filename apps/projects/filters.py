import django_filters

from apps.projects.models import Project


class ProjectFilter(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(
        field_name="allocation_status", choices=Project.AllocationStatus.choices
    )
    semester = django_filters.NumberFilter(field_name="semester")
    academic_year = django_filters.CharFilter(field_name="academic_year")
    title = django_filters.CharFilter(field_name="title", lookup_expr="icontains")
    faculty = django_filters.NumberFilter(field_name="allocated_faculty_id")

    class Meta:
        model = Project
        fields = ["semester", "academic_year"]
