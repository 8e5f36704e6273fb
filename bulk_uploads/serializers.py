# bulk_uploads/serializers.py
import os

from rest_framework import serializers

from shared.constants import UploadType

from .models import BulkUpload

MAX_UPLOAD_SIZE = 5 * 1024 * 1024  # 5MB


class BulkUploadSerializer(serializers.ModelSerializer):
    admin_id = serializers.IntegerField(read_only=True, allow_null=True)

    class Meta:
        model = BulkUpload
        fields = (
            'id', 'admin_id', 'upload_type', 'file_name', 'file_path', 'status',
            'total_rows', 'successful_rows', 'failed_rows', 'result_summary',
            'created_at', 'updated_at',
        )
        read_only_fields = fields


class BulkUploadCreateSerializer(serializers.Serializer):
    upload_type = serializers.ChoiceField(choices=UploadType.choices)
    file = serializers.FileField()

    def validate_file(self, value):
        extension = os.path.splitext(value.name.lower())[1]
        if extension != '.csv':
            raise serializers.ValidationError("Invalid file format. Only .csv files are supported.")
        if value.size > MAX_UPLOAD_SIZE:
            raise serializers.ValidationError("File size cannot exceed 5MB.")
        return value
