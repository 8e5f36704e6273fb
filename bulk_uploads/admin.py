# bulk_uploads/admin.py
from django.contrib import admin

from .models import BulkUpload


@admin.register(BulkUpload)
class BulkUploadAdmin(admin.ModelAdmin):
    list_display = ('file_name', 'upload_type', 'status', 'total_rows', 'successful_rows', 'failed_rows', 'created_at')
    list_filter = ('upload_type', 'status')
    search_fields = ('file_name', 'admin__email')
    raw_id_fields = ('admin',)
    readonly_fields = (
        'file_path', 'status', 'total_rows', 'successful_rows', 'failed_rows',
        'result_summary', 'created_at', 'updated_at',
    )
