# bulk_uploads/tests/test_views.py
from django.core.files.storage import default_storage
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase
from django.urls import reverse

from bulk_uploads.models import BulkUpload
from lessons.models import SessionPack
from shared.constants import UploadStatus, UserRole
from users.models import User

PACKS_CSV = (
    b"student_email,size,subject,session_type,location,weekly_frequency,purchased_date,expiry_date\n"
    b"sam@example.com,10,Piano,Solo,Offline,once,,\n"
    b"sam@example.com,12,Piano,Solo,Offline,once,,\n"
)


class BulkUploadApiTest(TestCase):
    def setUp(self):
        self.admin = User.objects.create_user(email="admin@example.com", name="Ada", role=UserRole.ADMIN)
        self.student = User.objects.create_user(email="sam@example.com", name="Sam", role=UserRole.STUDENT)

    def upload(self, content=PACKS_CSV, name='packs.csv', upload_type='session_packs'):
        return self.client.post(reverse('bulk_uploads:uploads'), {
            'upload_type': upload_type,
            'file': SimpleUploadedFile(name, content, content_type='text/csv'),
        })

    def test_admin_uploads_session_packs(self):
        self.client.force_login(self.admin)
        response = self.upload()

        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertEqual(body['invalidates'], ['bulk-uploads', 'packs'])
        self.assertEqual(body['data']['status'], UploadStatus.COMPLETED)
        self.assertEqual(body['data']['total_rows'], 2)
        self.assertEqual(body['data']['successful_rows'], 1)
        self.assertEqual(body['data']['result_summary']['errors'], [
            {'row': 3, 'message': "Invalid pack size: 12. Must be one of 4, 10, 20, or 30."},
        ])
        self.assertEqual(SessionPack.objects.filter(student=self.student).count(), 1)

    def test_rejects_non_csv(self):
        self.client.force_login(self.admin)
        response = self.upload(name='packs.xlsx')
        self.assertEqual(response.status_code, 400)
        self.assertFalse(BulkUpload.objects.exists())

    def test_rejects_unknown_type(self):
        self.client.force_login(self.admin)
        response = self.upload(upload_type='teachers')
        self.assertEqual(response.status_code, 400)

    def test_non_admin_forbidden(self):
        self.client.force_login(self.student)
        self.assertEqual(self.upload().status_code, 403)
        self.assertEqual(self.client.get(reverse('bulk_uploads:uploads')).status_code, 403)

    def test_list_and_detail(self):
        self.client.force_login(self.admin)
        upload_id = self.upload().json()['data']['id']

        listing = self.client.get(reverse('bulk_uploads:uploads'), {'status': 'completed'})
        self.assertEqual([row['id'] for row in listing.json()['data']], [upload_id])

        detail = self.client.get(reverse('bulk_uploads:upload_detail', args=[upload_id]))
        self.assertEqual(detail.json()['data']['file_name'], 'packs.csv')

    def test_delete(self):
        self.client.force_login(self.admin)
        data = self.upload().json()['data']

        response = self.client.delete(reverse('bulk_uploads:upload_detail', args=[data['id']]))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['invalidates'], ['bulk-uploads'])
        self.assertFalse(BulkUpload.objects.exists())
        self.assertFalse(default_storage.exists(data['file_path']))

    def test_missing_upload(self):
        self.client.force_login(self.admin)
        response = self.client.get(reverse('bulk_uploads:upload_detail', args=[999999]))
        self.assertEqual(response.status_code, 404)
