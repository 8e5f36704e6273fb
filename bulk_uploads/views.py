# bulk_uploads/views.py
"""
BULK UPLOADS API
================

Admin-only. Creating an upload stores the CSV and imports it in the same
request; the response carries the finished upload with its per-row report.
"""
import logging

from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.response import Response

from shared.decorators.permissions import require_admin
from shared.utils import CacheNamespaces

from .importers import IMPORTERS
from .serializers import BulkUploadCreateSerializer, BulkUploadSerializer
from .services import BulkUploadService

logger = logging.getLogger(__name__)


@api_view(['GET', 'POST'])
@require_admin
def bulk_uploads_view(request):
    if request.method == 'GET':
        uploads = BulkUploadService.uploads()
        for param in ('upload_type', 'status'):
            value = request.query_params.get(param)
            if value:
                uploads = uploads.filter(**{param: value})
        return Response({'success': True, 'data': BulkUploadSerializer(uploads, many=True).data})

    serializer = BulkUploadCreateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    upload_type = serializer.validated_data['upload_type']

    upload = BulkUploadService.create_upload(
        request.user,
        upload_type,
        serializer.validated_data['file'],
    )
    invalidates = sorted({CacheNamespaces.BULK_UPLOADS, *IMPORTERS[upload_type].namespaces})
    return Response({
        'success': True,
        'data': BulkUploadSerializer(upload).data,
        'invalidates': invalidates,
    }, status=status.HTTP_201_CREATED)


@api_view(['GET', 'DELETE'])
@require_admin
def bulk_upload_detail_view(request, upload_id):
    upload = BulkUploadService.get_upload(upload_id)

    if request.method == 'GET':
        return Response({'success': True, 'data': BulkUploadSerializer(upload).data})

    BulkUploadService.delete_upload(upload)
    return Response({
        'success': True,
        'message': "The upload record and associated file have been deleted.",
        'invalidates': [CacheNamespaces.BULK_UPLOADS],
    })
