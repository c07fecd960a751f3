"""Functions for reading objects from an S3 bucket--the "R" in CRUD."""

from typing import TYPE_CHECKING, Any, Dict, Iterator, Optional

import boto3
from botocore.exceptions import ClientError

if TYPE_CHECKING:
    from mypy_boto3_s3 import S3Client
    from mypy_boto3_s3.type_defs import GetObjectOutputTypeDef, HeadObjectOutputTypeDef

MISSING_OBJECT_ERROR_CODES = ("404", "NoSuchKey", "NotFound")


def is_missing_object_error(error: ClientError) -> bool:
    return error.response.get("Error", {}).get("Code") in MISSING_OBJECT_ERROR_CODES


def object_exists_in_s3(bucket_name: str, object_key: str, s3_client: Optional["S3Client"] = None) -> bool:
    """
    Check if an object exists in the S3 bucket using head_object.

    :param bucket_name: Name of the S3 bucket.
    :param object_key: Key of the object to check.
    :param s3_client: Optional S3 client to use. If not provided, a new client will be created.

    :return: True if the object exists, False otherwise.
    """
    s3_client = s3_client or boto3.client("s3")
    try:
        s3_client.head_object(Bucket=bucket_name, Key=object_key)
        return True
    except ClientError as err:
        if is_missing_object_error(err):
            return False
        raise


def fetch_s3_object_metadata(
    bucket_name: str,
    object_key: str,
    s3_client: Optional["S3Client"] = None,
) -> "HeadObjectOutputTypeDef":
    """Fetch an object's headers and user metadata without its body."""
    s3_client = s3_client or boto3.client("s3")
    return s3_client.head_object(Bucket=bucket_name, Key=object_key)


def fetch_s3_object(
    bucket_name: str,
    object_key: str,
    s3_client: Optional["S3Client"] = None,
) -> "GetObjectOutputTypeDef":
    """
    Fetch an object from S3.

    :param bucket_name: Name of the S3 bucket.
    :param object_key: Key of the S3 object.
    :param s3_client: Optional S3 client to use. If not provided, a new client will be created.

    :return: The `get_object` response; `Body` is a streaming body.
    """
    s3_client = s3_client or boto3.client("s3")
    return s3_client.get_object(Bucket=bucket_name, Key=object_key)


def iter_s3_objects_metadata(
    bucket_name: str,
    prefix: str = "",
    s3_client: Optional["S3Client"] = None,
) -> Iterator[Dict[str, Any]]:
    """
    Yield the listing entries (`Key`, `Size`, `LastModified`, ...) of every object in the bucket.

    :param bucket_name: Name of the S3 bucket.
    :param prefix: Only list keys starting with this prefix.
    :param s3_client: Optional S3 client to use. If not provided, a new client will be created.
    """
    s3_client = s3_client or boto3.client("s3")
    paginator = s3_client.get_paginator("list_objects_v2")
    for page in paginator.paginate(Bucket=bucket_name, Prefix=prefix):
        yield from page.get("Contents", [])
