from datetime import datetime, timezone

import pytest

from nl_files_api.adapters.storage import CREATED_AT_METADATA_KEY, S3Storage
from nl_files_api.errors import BackendUnavailable
from nl_files_api.s3.read_objects import object_exists_in_s3
from tests.consts import TEST_BUCKET_NAME


@pytest.fixture
def s3_storage(mocked_aws):
    return S3Storage(TEST_BUCKET_NAME, s3_client=mocked_aws)


def test_create_stores_text_object_with_created_at(mocked_aws, s3_storage):
    s3_storage.create("a.txt", b"hello")

    head = mocked_aws.head_object(Bucket=TEST_BUCKET_NAME, Key="a.txt")
    assert head["ContentType"] == "text/plain"
    assert CREATED_AT_METADATA_KEY in head["Metadata"]


def test_update_keeps_created_at_and_content_type(mocked_aws, s3_storage):
    s3_storage.add_uploaded("page.html", b"<p>v1</p>", "text/html")
    created_at = mocked_aws.head_object(Bucket=TEST_BUCKET_NAME, Key="page.html")["Metadata"][CREATED_AT_METADATA_KEY]

    s3_storage.update("page.html", b"<p>v2</p>")

    head = mocked_aws.head_object(Bucket=TEST_BUCKET_NAME, Key="page.html")
    assert head["Metadata"][CREATED_AT_METADATA_KEY] == created_at
    assert head["ContentType"] == "text/html"
    assert s3_storage.read("page.html") == b"<p>v2</p>"


def test_delete_removes_object(mocked_aws, s3_storage):
    s3_storage.create("a.txt", b"x")
    s3_storage.delete("a.txt")
    assert not object_exists_in_s3(TEST_BUCKET_NAME, "a.txt", s3_client=mocked_aws)


def test_list_paginates_whole_bucket(mocked_aws, s3_storage):
    for i in range(1005):
        mocked_aws.put_object(Bucket=TEST_BUCKET_NAME, Key=f"file{i:04d}.txt", Body=b"")
    assert len(s3_storage.names()) == 1005


def test_missing_bucket_raises_backend_unavailable(mocked_aws):
    storage = S3Storage("no-such-bucket", s3_client=mocked_aws)
    with pytest.raises(BackendUnavailable):
        storage.list()


def test_read_from_missing_bucket_is_not_a_not_found(mocked_aws):
    storage = S3Storage("no-such-bucket", s3_client=mocked_aws)
    with pytest.raises(BackendUnavailable):
        storage.read("a.txt")


def test_list_reads_created_at_from_object_metadata(mocked_aws, s3_storage):
    mocked_aws.put_object(
        Bucket=TEST_BUCKET_NAME,
        Key="old.txt",
        Body=b"x",
        ContentType="text/markdown",
        Metadata={CREATED_AT_METADATA_KEY: "2020-01-02T03:04:05+00:00"},
    )

    (entry,) = s3_storage.list()

    assert entry.created_at == datetime(2020, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    assert entry.modified_at > entry.created_at
    assert entry.mimetype == "text/markdown"


@pytest.mark.parametrize("metadata", [{}, {CREATED_AT_METADATA_KEY: "yesterday"}])
def test_list_falls_back_to_last_modified(mocked_aws, s3_storage, metadata):
    mocked_aws.put_object(Bucket=TEST_BUCKET_NAME, Key="foreign.txt", Body=b"x", Metadata=metadata)

    (entry,) = s3_storage.list()

    assert entry.created_at == entry.modified_at


def test_update_of_foreign_object_keeps_its_last_modified_as_created_at(mocked_aws, s3_storage):
    mocked_aws.put_object(Bucket=TEST_BUCKET_NAME, Key="foreign.txt", Body=b"x")
    (before,) = s3_storage.list()

    s3_storage.update("foreign.txt", b"y")

    (after,) = s3_storage.list()
    # HEAD reports Last-Modified to the second
    assert after.created_at == before.created_at.replace(microsecond=0)
