# bulk_uploads/tests/test_services.py
from io import StringIO

from django.core.files.base import ContentFile
from django.core.files.storage import default_storage
from django.core.files.uploadedfile import SimpleUploadedFile
from django.core.management import call_command
from django.test import TestCase

from bulk_uploads.models import BulkUpload
from bulk_uploads.services import BulkUploadService, CsvFileError, read_csv_rows
from core.exceptions import NotFoundError, ValidationError
from shared.constants import UploadStatus, UploadType, UserRole
from users.models import User

STUDENTS_CSV = (
    "name,email,preferred_subjects,notes\n"
    "Ria,ria@example.com,\"Piano, Vocal\",Evenings\n"
    "Sam,sam@example.com,,\n"
    ",missing@example.com,,\n"
)


def csv_file(content, name='students.csv'):
    if isinstance(content, str):
        content = content.encode('utf-8')
    return SimpleUploadedFile(name, content, content_type='text/csv')


class ReadCsvRowsTest(TestCase):
    def store(self, content):
        return default_storage.save('bulk_uploads/test/input.csv', ContentFile(content))

    def test_reads_rows_and_tolerates_bom(self):
        path = self.store("\ufeffname,email\nRia,ria@example.com\n".encode('utf-8'))
        self.assertEqual(read_csv_rows(path), [{'name': 'Ria', 'email': 'ria@example.com'}])

    def test_missing_file(self):
        with self.assertRaises(CsvFileError) as ctx:
            read_csv_rows('bulk_uploads/test/nowhere.csv')
        self.assertEqual(ctx.exception.message, "Failed to download file")

    def test_non_utf8_file(self):
        path = self.store("name,email\nRené,rene@example.com\n".encode('latin-1'))
        with self.assertRaises(CsvFileError):
            read_csv_rows(path)

    def test_extra_cells(self):
        path = self.store(b"name,email\nRia,ria@example.com,surplus\n")
        with self.assertRaises(CsvFileError) as ctx:
            read_csv_rows(path)
        self.assertEqual(ctx.exception.row, 2)

    def test_empty_file(self):
        path = self.store(b"")
        with self.assertRaises(CsvFileError):
            read_csv_rows(path)


class BulkUploadServiceTest(TestCase):
    def setUp(self):
        self.admin = User.objects.create_user(email="admin@example.com", name="Ada", role=UserRole.ADMIN)
        User.objects.create_user(email="sam@example.com", name="Sam", role=UserRole.STUDENT)

    def test_create_upload_stores_file_and_imports(self):
        upload = BulkUploadService.create_upload(self.admin, UploadType.STUDENTS, csv_file(STUDENTS_CSV))

        upload.refresh_from_db()
        self.assertTrue(upload.file_path.startswith('bulk_uploads/students/'))
        self.assertTrue(upload.file_path.endswith('_students.csv'))
        self.assertTrue(default_storage.exists(upload.file_path))
        self.assertEqual(upload.file_name, 'students.csv')
        self.assertEqual(upload.admin, self.admin)

        self.assertEqual(upload.status, UploadStatus.COMPLETED)
        self.assertEqual(upload.total_rows, 3)
        self.assertEqual(upload.successful_rows, 1)
        self.assertEqual(upload.failed_rows, 1)
        self.assertEqual(upload.result_summary['warnings'], [
            {'row': 3, 'message': "User with email sam@example.com already exists"},
        ])
        self.assertEqual(upload.result_summary['errors'], [
            {'row': 4, 'message': "Missing required fields: name and email are required"},
        ])
        self.assertTrue(User.objects.filter(email='ria@example.com').exists())

    def test_create_upload_without_processing(self):
        upload = BulkUploadService.create_upload(
            self.admin, UploadType.STUDENTS, csv_file(STUDENTS_CSV), process=False
        )
        self.assertEqual(upload.status, UploadStatus.PROCESSING)
        self.assertIsNone(upload.result_summary)

    def test_rejects_unknown_type(self):
        with self.assertRaises(ValidationError):
            BulkUploadService.create_upload(self.admin, 'teachers', csv_file(STUDENTS_CSV))
        self.assertFalse(BulkUpload.objects.exists())

    def test_all_rows_failing_fails_the_upload(self):
        upload = BulkUploadService.create_upload(
            self.admin, UploadType.STUDENTS, csv_file("name,email\n,a@example.com\nBo,\n")
        )
        self.assertEqual(upload.status, UploadStatus.FAILED)
        self.assertEqual(upload.failed_rows, 2)
        self.assertEqual(upload.successful_rows, 0)

    def test_unreadable_file_fails_with_row_zero_error(self):
        upload = BulkUploadService.create_upload(
            self.admin, UploadType.STUDENTS, csv_file("name,email\nRené,rene@example.com\n".encode('latin-1'))
        )
        self.assertEqual(upload.status, UploadStatus.FAILED)
        self.assertEqual(upload.result_summary['errors'][0]['row'], 0)
        self.assertEqual(upload.total_rows, 0)

    def test_unknown_stored_type_fails(self):
        upload = BulkUploadService.create_upload(
            self.admin, UploadType.STUDENTS, csv_file(STUDENTS_CSV), process=False
        )
        upload.upload_type = 'teachers'
        upload.save()

        BulkUploadService.process_upload(upload)
        upload.refresh_from_db()
        self.assertEqual(upload.status, UploadStatus.FAILED)
        self.assertEqual(upload.result_summary['errors'], [{'row': 0, 'message': "Invalid upload type"}])

    def test_delete_removes_file_then_record(self):
        upload = BulkUploadService.create_upload(self.admin, UploadType.STUDENTS, csv_file(STUDENTS_CSV))
        file_path = upload.file_path

        BulkUploadService.delete_upload(upload)

        self.assertFalse(default_storage.exists(file_path))
        self.assertFalse(BulkUpload.objects.exists())

    def test_delete_with_missing_file(self):
        upload = BulkUpload.objects.create(
            admin=self.admin, upload_type=UploadType.STUDENTS,
            file_name='gone.csv', file_path='bulk_uploads/students/0_gone.csv',
        )
        BulkUploadService.delete_upload(upload)
        self.assertFalse(BulkUpload.objects.exists())

    def test_get_upload_missing(self):
        with self.assertRaises(NotFoundError):
            BulkUploadService.get_upload(999999)

    def test_process_command(self):
        upload = BulkUploadService.create_upload(
            self.admin, UploadType.STUDENTS, csv_file(STUDENTS_CSV), process=False
        )
        out = StringIO()
        call_command('process_bulk_upload', str(upload.pk), stdout=out)

        upload.refresh_from_db()
        self.assertEqual(upload.status, UploadStatus.COMPLETED)
        self.assertIn('1 succeeded, 1 failed, 1 warnings', out.getvalue())
        self.assertIn('Row 4: Missing required fields', out.getvalue())
