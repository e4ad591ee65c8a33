from django.apps import AppConfig


class RxgateConfig(AppConfig):
    name = 'rxgate'
    default_auto_field = 'django.db.models.BigAutoField'
