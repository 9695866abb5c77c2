from django.apps import AppConfig


class LavasrcConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "lavasrc"
    verbose_name = "LavaSrc"
