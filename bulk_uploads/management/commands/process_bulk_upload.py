# management/commands/process_bulk_upload.py
from django.core.management.base import BaseCommand, CommandError

from bulk_uploads.models import BulkUpload
from bulk_uploads.services import BulkUploadService
from shared.constants import UploadStatus


class Command(BaseCommand):
    help = 'Re-run the import for a stored bulk upload'

    def add_arguments(self, parser):
        parser.add_argument('upload_id', type=int, help='ID of the bulk upload to process')

    def handle(self, *args, **options):
        upload_id = options['upload_id']
        try:
            upload = BulkUpload.objects.get(pk=upload_id)
        except BulkUpload.DoesNotExist:
            raise CommandError(f'Bulk upload {upload_id} does not exist')

        self.stdout.write(f'Processing {upload.upload_type} upload "{upload.file_name}"...')
        report = BulkUploadService.process_upload(upload)

        for error in report.errors:
            self.stdout.write(self.style.WARNING(f"Row {error['row']}: {error['message']}"))

        message = (
            f'Upload {upload.pk} {upload.status}: {report.success_count} succeeded, '
            f'{report.failure_count} failed, {len(report.warnings)} warnings'
        )
        if upload.status == UploadStatus.FAILED:
            self.stdout.write(self.style.ERROR(message))
        else:
            self.stdout.write(self.style.SUCCESS(message))
