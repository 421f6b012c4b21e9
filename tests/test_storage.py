"""Tests for object and record storage adapters and the publisher."""

from __future__ import annotations

from datetime import UTC, datetime
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from conftest import FlakyObjectStore
from imgshare.config import Settings
from imgshare.media.errors import PublishError
from imgshare.media.models import DerivedArtifact, ImageRecord
from imgshare.media.publisher import publish, retract
from imgshare.storage.object_store import (
    InMemoryObjectStore,
    ObjectStoreError,
    S3ObjectStore,
    build_object_store,
)
from imgshare.storage.record_store import InMemoryRecordStore


def _s3_settings(**overrides: object) -> Settings:
    defaults: dict[str, object] = {
        "storage_backend": "s3",
        "s3_bucket": "media",
        "s3_endpoint_url": "https://r2.example.com",
        "s3_access_key_id": "key",
        "s3_secret_access_key": "secret",
    }
    defaults.update(overrides)
    return Settings(**defaults)  # type: ignore[arg-type]


def _artifact() -> DerivedArtifact:
    return DerivedArtifact(data=b"webp-bytes", width=10, height=5, mime_type="image/webp", extension="webp")


class TestS3ObjectStore:
    @patch("imgshare.storage.object_store.boto3")
    def test_client_configuration(self, mock_boto3: MagicMock) -> None:
        S3ObjectStore(_s3_settings())
        mock_boto3.client.assert_called_once_with(
            "s3",
            endpoint_url="https://r2.example.com",
            region_name=None,
            aws_access_key_id="key",
            aws_secret_access_key="secret",
        )

    @patch("imgshare.storage.object_store.boto3")
    def test_put_uploads_and_returns_address(self, mock_boto3: MagicMock) -> None:
        client = mock_boto3.client.return_value
        store = S3ObjectStore(_s3_settings(public_base_url="https://cdn.example.com/"))

        url = store.put("abc.webp", b"data", "image/webp")

        client.put_object.assert_called_once_with(
            Bucket="media", Key="abc.webp", Body=b"data", ContentType="image/webp"
        )
        assert url == "https://cdn.example.com/abc.webp"

    @pytest.mark.parametrize(
        ("overrides", "expected"),
        [
            ({}, "https://r2.example.com/media/k.png"),
            ({"s3_endpoint_url": None, "s3_region": "eu-west-1"}, "https://media.s3.eu-west-1.amazonaws.com/k.png"),
            ({"s3_endpoint_url": None}, "https://media.s3.amazonaws.com/k.png"),
        ],
    )
    @patch("imgshare.storage.object_store.boto3")
    def test_public_url(self, mock_boto3: MagicMock, overrides: dict[str, object], expected: str) -> None:
        assert S3ObjectStore(_s3_settings(**overrides)).public_url("k.png") == expected

    @patch("imgshare.storage.object_store.boto3")
    def test_client_error_wrapped(self, mock_boto3: MagicMock) -> None:
        client = mock_boto3.client.return_value
        client.put_object.side_effect = ClientError({"Error": {"Code": "AccessDenied", "Message": "denied"}}, "PutObject")
        store = S3ObjectStore(_s3_settings())
        with pytest.raises(ObjectStoreError, match="AccessDenied"):
            store.put("abc.webp", b"data", "image/webp")

    @patch("imgshare.storage.object_store.boto3")
    def test_transport_error_wrapped(self, mock_boto3: MagicMock) -> None:
        client = mock_boto3.client.return_value
        client.delete_object.side_effect = EndpointConnectionError(endpoint_url="https://r2.example.com")
        store = S3ObjectStore(_s3_settings())
        with pytest.raises(ObjectStoreError):
            store.delete("abc.webp")


class TestBuildObjectStore:
    def test_memory_default(self) -> None:
        store = build_object_store(Settings())
        assert isinstance(store, InMemoryObjectStore)
        assert store.name == "memory"

    @patch("imgshare.storage.object_store.boto3")
    def test_s3(self, mock_boto3: MagicMock) -> None:
        assert isinstance(build_object_store(_s3_settings()), S3ObjectStore)


class TestPublisher:
    def test_publish_returns_location(self) -> None:
        store = InMemoryObjectStore("https://cdn.example.com")
        published = publish(store, _artifact(), "abc.webp")
        assert published.url == "https://cdn.example.com/abc.webp"
        assert (published.width, published.height, published.size) == (10, 5, len(b"webp-bytes"))
        assert store.get("abc.webp") == (b"webp-bytes", "image/webp")

    def test_publish_failure_raises_publish_error(self) -> None:
        with pytest.raises(PublishError, match="abc_thumb.webp"):
            publish(FlakyObjectStore(fail_on="thumb"), _artifact(), "abc_thumb.webp")

    def test_retract_removes_and_tolerates_failures(self) -> None:
        store = InMemoryObjectStore()
        published = [publish(store, _artifact(), "a.webp"), publish(store, _artifact(), "b.webp")]
        def _delete(key: str) -> None:
            if key == "a.webp":
                raise ObjectStoreError("gone")
            store.delete(key)

        broken = MagicMock()
        broken.delete.side_effect = _delete

        retract(broken, [item.key for item in published])

        assert broken.delete.call_count == 2
        assert store.keys() == ["a.webp"]


class TestInMemoryRecordStore:
    def _record(self, record_id: str) -> ImageRecord:
        now = datetime.now(UTC)
        return ImageRecord(
            id=record_id,
            user_id="anonymous",
            filename=f"{record_id}.webp",
            original_name="a.png",
            mime_type="image/png",
            size=10,
            width=1,
            height=1,
            primary_size=5,
            url="memory://x",
            thumbnail_url="memory://y",
            thumbnail_width=300,
            thumbnail_height=300,
            thumbnail_size=7,
            is_public=True,
            created_at=now,
            updated_at=now,
        )

    def test_insert_and_get(self) -> None:
        store = InMemoryRecordStore()
        store.insert(self._record("one"))
        assert store.get("one") is not None
        assert store.get("missing") is None
        assert len(store) == 1

    def test_duplicate_insert_rejected(self) -> None:
        store = InMemoryRecordStore()
        store.insert(self._record("one"))
        with pytest.raises(KeyError):
            store.insert(self._record("one"))

    def test_delete(self) -> None:
        store = InMemoryRecordStore()
        store.insert(self._record("one"))
        store.delete("one")
        store.delete("one")
        assert store.get("one") is None
        assert len(store) == 0
