from django.apps import AppConfig


class RevolutionsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "api.revolutions"
    label = "revolutions"
    verbose_name = "Revolutions"
