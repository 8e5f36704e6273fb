from django.apps import AppConfig


class BulkUploadsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'bulk_uploads'
    verbose_name = 'Bulk Uploads'
