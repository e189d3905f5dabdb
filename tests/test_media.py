"""Tests for image compression and Cloudinary uploads."""

import io

import cloudinary.exceptions
import pytest
from PIL import Image

from parcel_tracker import media
from parcel_tracker.config import AppConfig
from parcel_tracker.errors import ConfigurationError, MediaUploadError
from parcel_tracker.media import MAX_DIMENSION, MediaUploader, compress_image


def _png(width, height):
    buffer = io.BytesIO()
    Image.new("RGBA", (width, height), (200, 30, 30, 255)).save(buffer, format="PNG")
    return buffer.getvalue()


def test_compress_image_resizes_to_jpeg():
    output = compress_image(_png(3000, 1500))
    image = Image.open(io.BytesIO(output))
    assert image.format == "JPEG"
    assert max(image.size) == MAX_DIMENSION
    assert len(output) <= media.MAX_BYTES


def test_compress_rejects_non_images():
    with pytest.raises(MediaUploadError):
        compress_image(b"not an image")


def test_uploader_requires_configuration():
    uploader = MediaUploader(AppConfig())
    assert not uploader.enabled
    with pytest.raises(ConfigurationError):
        uploader.upload(b"jpeg")


def test_unsigned_upload(monkeypatch):
    calls = []

    def unsigned_upload(file, preset, **options):
        calls.append((preset, options))
        return {"secure_url": "https://res.cloudinary.com/demo/image/upload/x.jpg"}

    monkeypatch.setattr(media.cloudinary.uploader, "unsigned_upload", unsigned_upload)
    uploader = MediaUploader(AppConfig(cloudinary_cloud_name="demo", cloudinary_upload_preset="parcels"))
    assert uploader.enabled
    assert uploader.upload(b"jpeg", "w.jpg") == "https://res.cloudinary.com/demo/image/upload/x.jpg"
    assert calls == [("parcels", {"folder": "parcel-tracker", "resource_type": "image"})]


def test_upload_failure(monkeypatch):
    def fail(file, preset, **options):
        raise cloudinary.exceptions.Error("Upload preset not found")

    monkeypatch.setattr(media.cloudinary.uploader, "unsigned_upload", fail)
    uploader = MediaUploader(AppConfig(cloudinary_cloud_name="demo", cloudinary_upload_preset="parcels"))
    with pytest.raises(MediaUploadError, match="Upload preset not found"):
        uploader.upload(b"jpeg")


def test_upload_image_compresses_before_upload(monkeypatch):
    uploaded = []

    def unsigned_upload(file, preset, **options):
        uploaded.append(file.getvalue())
        return {"secure_url": "https://res.cloudinary.com/demo/image/upload/sig.jpg"}

    monkeypatch.setattr(media.cloudinary.uploader, "unsigned_upload", unsigned_upload)
    uploader = MediaUploader(AppConfig(cloudinary_cloud_name="demo", cloudinary_upload_preset="parcels"))
    assert uploader.upload_image(_png(2000, 800), "sig.png").endswith("/sig.jpg")
    assert Image.open(io.BytesIO(uploaded[0])).format == "JPEG"


def test_upload_image_failure_propagates(monkeypatch):
    def fail(file, preset, **options):
        raise cloudinary.exceptions.Error("Network down")

    monkeypatch.setattr(media.cloudinary.uploader, "unsigned_upload", fail)
    uploader = MediaUploader(AppConfig(cloudinary_cloud_name="demo", cloudinary_upload_preset="parcels"))
    with pytest.raises(MediaUploadError, match="Network down"):
        uploader.upload_image(_png(40, 40), "sig.png")
