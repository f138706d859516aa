"""
S3 Utilities — Client Init • Upload • Presigned Download
========================================================

Purpose
-------
Small helper module for interacting with Amazon S3:
- Initialize an S3 client with Signature V4
- Upload an in-memory file (sets ContentType + ContentDisposition)
- Generate a presigned URL for downloads

Configuration (from `opengmao.database.config.config.settings`)
---------------------------------------------------------------
- AWS_ACCESS_KEY : Access key ID
- AWS_SECRET_KEY : Secret access key
- REGION         : AWS region (e.g., "eu-west-3")
- BUCKET_NAME    : Target S3 bucket (default "ai-uploads")

Security Notes
--------------
- Presigned URLs grant temporary access; choose sensible expirations and never expose bucket names/keys unnecessarily.
"""

import io
import boto3
import botocore
from opengmao.database.config.config import settings


def get_client():
    """
    Initialize and return a low-level S3 client configured for Signature V4.

    Uses:
        - settings.AWS_ACCESS_KEY
        - settings.AWS_SECRET_KEY
        - settings.REGION

    Returns:
        botocore.client.S3: An S3 client ready for object operations.
    """
    s3_client = boto3.client('s3',
                             aws_access_key_id=settings.AWS_ACCESS_KEY,
                             aws_secret_access_key=settings.AWS_SECRET_KEY,
                             region_name=settings.REGION,
                             config=botocore.config.Config(signature_version="s3v4"),)
    return s3_client


def upload_bytes(data: bytes, key: str, content_type: str, s3_client, file_name: str = None):
    """
    Upload in-memory file content to S3 with explicit headers.

    Args:
        data (bytes): File content.
        key (str): Object key (destination path/name in the bucket).
        content_type (str): MIME type stored as the object's ContentType.
        s3_client (botocore.client.S3): Client returned by `get_client()`.
        file_name (str, optional): Name offered to browsers on download.

    Returns:
        None

    Caveats:
        - Ensure `settings.BUCKET_NAME` exists and the credentials have `s3:PutObject` permission.
    """
    extra_args = {"ContentType": content_type}
    if file_name:
        extra_args["ContentDisposition"] = f'inline; filename="{file_name}"'
    s3_client.upload_fileobj(io.BytesIO(data), settings.BUCKET_NAME, key, ExtraArgs=extra_args)


def download(key: str, s3_client, expires: int = 3600):
    """
    Generate a presigned URL for downloading an object.

    Args:
        key (str): Object key in the bucket.
        s3_client (botocore.client.S3): Client returned by `get_client()`.
        expires (int, optional): URL expiration in seconds (default: 3600).

    Returns:
        str: A presigned URL that allows temporary GET access.
    """
    response = s3_client.generate_presigned_url(
        'get_object',
        Params={
            'Bucket': settings.BUCKET_NAME,
            'Key': key
        },
        ExpiresIn=expires
    )
    return response
