# bulk_uploads/models.py
from django.db import models
from django.conf import settings

from shared.constants import UploadType, UploadStatus


class BulkUpload(models.Model):
    """One CSV file uploaded by an admin and the outcome of importing it."""
    admin = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='bulk_uploads',
    )
    upload_type = models.CharField(max_length=20, choices=UploadType.choices)
    file_name = models.CharField(max_length=255)
    file_path = models.CharField(max_length=500)
    status = models.CharField(max_length=20, choices=UploadStatus.choices, default=UploadStatus.PROCESSING)

    total_rows = models.PositiveIntegerField(default=0)
    successful_rows = models.PositiveIntegerField(default=0)
    failed_rows = models.PositiveIntegerField(default=0)
    # {"success": [{row, id}], "errors": [{row, message}], "warnings": [{row, message}]}
    result_summary = models.JSONField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'bulk_uploads_bulk_upload'
        verbose_name = 'Bulk Upload'
        verbose_name_plural = 'Bulk Uploads'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['upload_type', 'status']),
            models.Index(fields=['created_at']),
        ]

    def __str__(self):
        return f"{self.get_upload_type_display()} upload: {self.file_name} ({self.status})"

    @property
    def is_finished(self):
        return self.status != UploadStatus.PROCESSING
