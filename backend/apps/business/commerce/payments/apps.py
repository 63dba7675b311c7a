from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.business.commerce.payments'
    label = 'payments'
    verbose_name = 'Payments'
