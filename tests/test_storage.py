import re

import boto3
import pytest
from moto import mock_aws

from quirii.errors import TransientStorageError, ValidationError
from quirii.storage import (
    LocalImageStore,
    S3ImageStore,
    StoredImage,
    check_image_size,
    discard_complaint_image,
    store_complaint_image,
    validate_image,
)

FIVE_MB = 5 * 1024 * 1024


def test_validate_image_accepts_png(png_bytes):
    assert validate_image(png_bytes, "photo.PNG", FIVE_MB) == "png"


def test_validate_image_size_ceiling(png_bytes):
    with pytest.raises(ValidationError, match="Image must be less than 5MB"):
        validate_image(b"\x00" * (FIVE_MB + 1), "photo.png", FIVE_MB)


def test_validate_image_rejects_extension_and_garbage(png_bytes):
    with pytest.raises(ValidationError, match="File type not allowed"):
        validate_image(png_bytes, "photo.exe", FIVE_MB)
    with pytest.raises(ValidationError, match="File type not allowed"):
        validate_image(png_bytes, "photo", FIVE_MB)
    with pytest.raises(ValidationError, match="Invalid image file"):
        validate_image(b"definitely not an image", "photo.jpg", FIVE_MB)


def test_local_store_layout(tmp_path, png_bytes):
    store = LocalImageStore(tmp_path, "http://cdn.local/")

    stored = store_complaint_image(store, "user-1", "pic.png", png_bytes, max_bytes=FIVE_MB)

    assert re.fullmatch(r"user-1/\d+\.png", stored.path)
    assert stored.url == f"http://cdn.local/storage/complaint-images/{stored.path}"
    files = list((tmp_path / "complaint-images" / "user-1").iterdir())
    assert len(files) == 1
    assert files[0].read_bytes() == png_bytes


def test_local_store_failure_is_transient(tmp_path, png_bytes):
    blocker = tmp_path / "root"
    blocker.write_text("a file where a directory should be")
    store = LocalImageStore(blocker)

    with pytest.raises(TransientStorageError):
        store.put("user-1/1.png", png_bytes, "image/png")


@mock_aws
def test_s3_store_puts_object(png_bytes):
    boto3.client("s3", region_name="us-east-1").create_bucket(Bucket="complaint-images")
    store = S3ImageStore(
        bucket="complaint-images",
        region="us-east-1",
        access_key_id="testing",
        secret_access_key="testing",
    )

    stored = store_complaint_image(store, "user-9", "shot.png", png_bytes, max_bytes=FIVE_MB)

    match = re.fullmatch(r"https://complaint-images\.s3\.us-east-1\.amazonaws\.com/(complaint-images/user-9/\d+\.png)", stored.url)
    assert match
    obj = boto3.client("s3", region_name="us-east-1").get_object(Bucket="complaint-images", Key=match.group(1))
    assert obj["Body"].read() == png_bytes
    assert obj["ContentType"] == "image/png"


@mock_aws
def test_s3_store_missing_bucket_is_transient(png_bytes):
    store = S3ImageStore(bucket="no-such-bucket", region="us-east-1")

    with pytest.raises(TransientStorageError):
        store.put("user-9/1.png", png_bytes, "image/png")


def test_s3_public_url_prefers_cloudfront():
    with mock_aws():
        store = S3ImageStore(bucket="b", region="eu-west-1", cloudfront_domain="d111.cloudfront.net")
        assert store.public_url("complaint-images/x.png") == "https://d111.cloudfront.net/complaint-images/x.png"

        store = S3ImageStore(bucket="b", region="eu-west-1", endpoint="http://minio:9000/")
        assert store.public_url("complaint-images/x.png") == "http://minio:9000/b/complaint-images/x.png"


def test_check_image_size():
    check_image_size(FIVE_MB, FIVE_MB)
    with pytest.raises(ValidationError, match="Image must be less than 5MB"):
        check_image_size(FIVE_MB + 1, FIVE_MB)


def test_discard_removes_local_image(tmp_path, png_bytes):
    store = LocalImageStore(tmp_path)
    stored = store_complaint_image(store, "user-1", "pic.png", png_bytes, max_bytes=FIVE_MB)

    assert discard_complaint_image(store, stored) is True
    assert list((tmp_path / "complaint-images" / "user-1").iterdir()) == []


def test_discard_failure_is_logged_not_raised(tmp_path):
    blocker = tmp_path / "root"
    blocker.write_text("a file where a directory should be")
    store = LocalImageStore(blocker)

    assert discard_complaint_image(store, StoredImage(path="user-1/1.png", url="http://x/1.png")) is False


@mock_aws
def test_discard_removes_s3_object(png_bytes):
    s3 = boto3.client("s3", region_name="us-east-1")
    s3.create_bucket(Bucket="complaint-images")
    store = S3ImageStore(bucket="complaint-images", region="us-east-1")
    stored = store_complaint_image(store, "user-9", "shot.png", png_bytes, max_bytes=FIVE_MB)

    assert discard_complaint_image(store, stored) is True
    assert s3.list_objects_v2(Bucket="complaint-images").get("KeyCount") == 0
