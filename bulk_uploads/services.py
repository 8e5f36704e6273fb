# bulk_uploads/services.py
"""
Bulk upload lifecycle: store the CSV, run the importer, persist the report.
"""
import csv
import io
import logging

from django.conf import settings
from django.core.files.storage import default_storage
from django.db import DatabaseError
from django.utils import timezone
from django.utils.text import get_valid_filename

from core.exceptions import NotFoundError, TransportError, ValidationError
from shared.constants import UploadStatus, UploadType
from shared.utils import CacheNamespaces, publish

from .importers import ImportReport, get_importer
from .models import BulkUpload

logger = logging.getLogger(__name__)


class CsvFileError(Exception):
    """The uploaded file cannot be turned into rows."""

    def __init__(self, message, row=0):
        self.message = message
        self.row = row
        super().__init__(message)


def read_csv_rows(file_path):
    """
    Read a stored CSV into a list of {column: value} dicts.

    Raises:
        CsvFileError: Missing file, non UTF-8 content, malformed CSV, or a
            row with more cells than the header
    """
    try:
        with default_storage.open(file_path, 'rb') as handle:
            raw = handle.read()
    except OSError as e:
        logger.warning(f"Could not open bulk upload file {file_path}: {str(e)}")
        raise CsvFileError("Failed to download file") from e

    try:
        text = raw.decode('utf-8-sig')
    except UnicodeDecodeError as e:
        raise CsvFileError("Unable to read the uploaded file. Ensure it is a UTF-8 encoded CSV.") from e

    reader = csv.DictReader(io.StringIO(text, newline=''), strict=True)
    rows = []
    try:
        for row in reader:
            if None in row:
                raise CsvFileError(
                    f"Expected {len(reader.fieldnames)} columns but found more",
                    row=reader.line_num,
                )
            rows.append(row)
    except csv.Error as e:
        raise CsvFileError(f"Invalid CSV format: {str(e)}", row=reader.line_num) from e

    if not reader.fieldnames:
        raise CsvFileError("The uploaded file is empty")
    return rows


class BulkUploadService:
    """Create, process and delete bulk uploads."""

    @staticmethod
    def build_file_path(upload_type, file_name, now=None):
        """`<upload dir>/<upload_type>/<epoch millis>_<file name>`"""
        now = now or timezone.now()
        stamp = int(now.timestamp() * 1000)
        upload_dir = getattr(settings, 'CADENZA_BULK_UPLOAD_DIR', 'bulk_uploads')
        return f"{upload_dir}/{upload_type}/{stamp}_{get_valid_filename(file_name)}"

    @staticmethod
    def create_upload(admin, upload_type, uploaded_file, process=True) -> BulkUpload:
        """
        Store an uploaded CSV and record the upload.

        Args:
            admin: User performing the upload
            upload_type: UploadType value
            uploaded_file: Django UploadedFile (or any File)
            process: Run the import right away

        Returns:
            BulkUpload: The upload, already processed when `process` is set

        Raises:
            ValidationError: Unknown upload type
            TransportError: The file or the record could not be written
        """
        if upload_type not in UploadType.values:
            raise ValidationError("Invalid upload type")

        file_name = uploaded_file.name
        try:
            file_path = default_storage.save(
                BulkUploadService.build_file_path(upload_type, file_name),
                uploaded_file,
            )
        except OSError as e:
            logger.error(f"Failed to store bulk upload file {file_name}: {str(e)}", exc_info=True)
            raise TransportError("Could not store uploaded file") from e

        try:
            upload = BulkUpload.objects.create(
                admin=admin,
                upload_type=upload_type,
                file_name=file_name,
                file_path=file_path,
                status=UploadStatus.PROCESSING,
            )
        except DatabaseError as e:
            logger.error(f"Failed to record bulk upload {file_path}: {str(e)}", exc_info=True)
            raise TransportError("Could not record upload") from e

        logger.info(f"Bulk upload {upload.pk} stored at {file_path} by {getattr(admin, 'email', None)}")
        publish(BulkUploadService, CacheNamespaces.BULK_UPLOADS)

        if process:
            BulkUploadService.process_upload(upload)
        return upload

    @staticmethod
    def process_upload(upload: BulkUpload) -> ImportReport:
        """
        Parse the stored file and import every row.

        File level problems (unreadable file, bad CSV, unknown type) fail the
        upload with a single row-0 error. Row problems are recorded per row.
        """
        upload.status = UploadStatus.PROCESSING
        upload.save(update_fields=['status', 'updated_at'])

        try:
            importer = get_importer(upload.upload_type)
        except ValidationError as e:
            return BulkUploadService._finish(upload, ImportReport.file_error(e.message))

        try:
            rows = read_csv_rows(upload.file_path)
        except CsvFileError as e:
            return BulkUploadService._finish(upload, ImportReport.file_error(e.message, row=e.row))

        upload.total_rows = len(rows)
        upload.save(update_fields=['total_rows', 'updated_at'])

        report = importer.run(rows)
        return BulkUploadService._finish(upload, report, importer.namespaces)

    @staticmethod
    def _finish(upload, report, namespaces=()):
        upload.status = report.final_status
        upload.successful_rows = report.success_count
        upload.failed_rows = report.failure_count
        upload.result_summary = report.as_summary()
        upload.save(update_fields=['status', 'successful_rows', 'failed_rows', 'result_summary', 'updated_at'])

        if report.aborted:
            logger.warning(f"Bulk upload {upload.pk} failed: {report.errors[0]['message']}")
        else:
            logger.info(
                f"Bulk upload {upload.pk} {upload.status}: {report.success_count} of "
                f"{upload.total_rows} rows imported"
            )

        publish(BulkUploadService, CacheNamespaces.BULK_UPLOADS, *namespaces)
        return report

    @staticmethod
    def delete_upload(upload: BulkUpload) -> None:
        """
        Delete the stored file, then the record.

        A file that cannot be removed is logged and does not block deleting
        the record.
        """
        try:
            default_storage.delete(upload.file_path)
        except OSError as e:
            logger.warning(f"Could not delete file {upload.file_path}: {str(e)}")

        upload_id = upload.pk
        upload.delete()
        publish(BulkUploadService, CacheNamespaces.BULK_UPLOADS)
        logger.info(f"Bulk upload {upload_id} deleted")

    @staticmethod
    def uploads():
        return BulkUpload.objects.select_related('admin')

    @staticmethod
    def get_upload(upload_id) -> BulkUpload:
        try:
            return BulkUploadService.uploads().get(pk=upload_id)
        except BulkUpload.DoesNotExist:
            raise NotFoundError(f"Bulk upload {upload_id} not found")
