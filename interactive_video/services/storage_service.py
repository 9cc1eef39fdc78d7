"""S3 presigned upload URLs for direct-to-storage video uploads."""

import os
import uuid

from botocore.config import Config

VIDEO_EXTENSIONS_BY_MIME = {
    'video/mp4': 'mp4',
    'video/webm': 'webm',
    'video/ogg': 'ogv',
    'video/quicktime': 'mov',
    'video/x-matroska': 'mkv',
    'video/x-msvideo': 'avi',
    'video/mpeg': 'mpeg',
}

SIGNATURE_CONFIG = Config(signature_version='s3v4')


def build_upload_key(uid, file_name, file_type):
    ext = os.path.splitext(str(file_name or ''))[1].lstrip('.').lower()
    if not ext or not ext.isalnum() or len(ext) > 8:
        ext = VIDEO_EXTENSIONS_BY_MIME.get(file_type, 'mp4')
    return f"videos/{uid}/{uuid.uuid4().hex}.{ext}"


def generate_presigned_upload_url(s3_client, bucket, key, content_type, expires=3600):
    return s3_client.generate_presigned_url(
        'put_object',
        Params={'Bucket': bucket, 'Key': key, 'ContentType': content_type},
        ExpiresIn=expires,
    )


def build_object_url(bucket, region, key):
    return f"https://{bucket}.s3.{region}.amazonaws.com/{key}"
