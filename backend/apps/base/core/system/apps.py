from django.apps import AppConfig


class SystemConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.base.core.system'
    label = 'system'
    verbose_name = 'System'
