"""
Tests for the S3-compatible storage wrapper, using a stub boto3 client.
"""
import pytest
from botocore.exceptions import ClientError

from sheetbridge.core.config import settings
from sheetbridge.integrations import storage
from sheetbridge.integrations.storage import StorageUploadError, get_public_url, upload_file


class StubS3Client:
    def __init__(self, existing=()):
        self.objects = {key: b"" for key in existing}
        self.put_calls = []

    def head_object(self, Bucket, Key):
        if Key not in self.objects:
            raise ClientError({"Error": {"Code": "404", "Message": "Not Found"}}, "HeadObject")
        return {}

    def put_object(self, Bucket, Key, Body, ContentType, CacheControl):
        self.put_calls.append({"Bucket": Bucket, "Key": Key, "ContentType": ContentType})
        self.objects[Key] = Body
        return {"ETag": '"abc123"'}


@pytest.fixture
def stub_client(monkeypatch):
    client = StubS3Client(existing=["user-1/taken.csv"])
    monkeypatch.setattr(storage, "get_storage_client", lambda: client)
    return client


def test_upload_puts_object_in_configured_bucket(stub_client):
    result = upload_file(b"a,b\n", "user-1/1_clean.csv", "text/csv")

    assert result == {"file_id": "abc123", "file_path": "user-1/1_clean.csv", "size": 4}
    assert stub_client.put_calls == [
        {"Bucket": settings.storage_bucket_name, "Key": "user-1/1_clean.csv", "ContentType": "text/csv"}
    ]


def test_upload_never_replaces_an_existing_object(stub_client):
    with pytest.raises(StorageUploadError, match="already exists"):
        upload_file(b"new", "user-1/taken.csv", "text/csv")

    assert stub_client.put_calls == []


def test_upload_with_overwrite_replaces_object(stub_client):
    upload_file(b"new", "user-1/taken.csv", "text/csv", overwrite=True)

    assert stub_client.objects["user-1/taken.csv"] == b"new"


def test_missing_credentials_surface_as_upload_error(monkeypatch):
    monkeypatch.setattr(settings, "storage_access_key_id", "")

    with pytest.raises(StorageUploadError, match="incomplete"):
        upload_file(b"x", "user-1/a.csv", "text/csv")


def test_public_url_prefers_public_base_url(monkeypatch):
    monkeypatch.setattr(settings, "storage_public_base_url", "https://cdn.example.com/public/")
    monkeypatch.setattr(settings, "storage_endpoint_url", "https://s3.example.com")

    assert get_public_url("user-1/1_a b.csv") == "https://cdn.example.com/public/uploads/user-1/1_a%20b.csv"


def test_public_url_falls_back_to_endpoint_then_aws(monkeypatch):
    monkeypatch.setattr(settings, "storage_public_base_url", "")
    monkeypatch.setattr(settings, "storage_endpoint_url", "https://s3.example.com/")
    assert get_public_url("k.csv", bucket="files") == "https://s3.example.com/files/k.csv"

    monkeypatch.setattr(settings, "storage_endpoint_url", "")
    monkeypatch.setattr(settings, "storage_region", "eu-west-1")
    assert get_public_url("k.csv", bucket="files") == "https://files.s3.eu-west-1.amazonaws.com/k.csv"
