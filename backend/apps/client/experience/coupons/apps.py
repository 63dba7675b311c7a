from django.apps import AppConfig


class CouponsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.client.experience.coupons'
    label = 'coupons'
    verbose_name = 'Coupons'
