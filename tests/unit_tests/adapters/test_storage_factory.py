from types import SimpleNamespace

import pytest

from nl_files_api.adapters.storage import LocalStorage, MemoryStorage, S3Storage, StorageFactory
from nl_files_api.settings import Settings
from tests.consts import TEST_BUCKET_NAME


def _settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


def test_local_dev_uses_filesystem(tmp_path):
    storage = StorageFactory.get_storage(_settings(deployment_mode="local-dev", uploads_dir=str(tmp_path / "up")))
    assert isinstance(storage, LocalStorage)
    assert storage.uploads_dir == (tmp_path / "up").resolve()


def test_memory_mode_uses_fresh_memory_store():
    first = StorageFactory.get_storage(_settings(deployment_mode="memory"))
    second = StorageFactory.get_storage(_settings(deployment_mode="memory"))
    assert isinstance(first, MemoryStorage)
    assert first.store is not second.store


def test_aws_prod_with_bucket_uses_s3(mocked_aws):
    storage = StorageFactory.get_storage(_settings(deployment_mode="aws-prod", s3_bucket_name=TEST_BUCKET_NAME))
    assert isinstance(storage, S3Storage)
    storage.create("a.txt", b"hello")
    assert mocked_aws.get_object(Bucket=TEST_BUCKET_NAME, Key="a.txt")["Body"].read() == b"hello"


def test_aws_prod_without_bucket_falls_back_to_memory():
    storage = StorageFactory.get_storage(_settings(deployment_mode="aws-prod", s3_bucket_name=None))
    assert isinstance(storage, MemoryStorage)


def test_unknown_backend_is_rejected():
    settings = SimpleNamespace(storage_backend="tape", deployment_mode="memory")
    with pytest.raises(ValueError, match="Invalid storage backend"):
        StorageFactory.get_storage(settings)
