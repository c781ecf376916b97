from django.apps import AppConfig


class StockitConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'stockit'
    verbose_name = 'Stockit Sync'
