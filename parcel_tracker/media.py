"""Image compression and Cloudinary uploads.

Weight proofs and payment signatures are photographed on phones, so images
are shrunk before they are uploaded or queued offline.
"""

import io
import logging
from typing import Optional

import cloudinary
import cloudinary.exceptions
import cloudinary.uploader
from PIL import Image, ImageOps, UnidentifiedImageError

from .config import AppConfig
from .errors import ConfigurationError, MediaUploadError


logger = logging.getLogger(__name__)

MAX_DIMENSION = 1024
MAX_BYTES = 200 * 1024
START_QUALITY = 85
MIN_QUALITY = 35
QUALITY_STEP = 10

UPLOAD_FOLDER = "parcel-tracker"


def compress_image(data: bytes) -> bytes:
    """Shrink an image to at most 1024 px and roughly 200 KB of JPEG.

    JPEG quality is lowered step by step until the result fits, stopping at
    a floor so the photo stays legible.

    Args:
        data: Raw image bytes in any format Pillow can open.

    Returns:
        JPEG bytes.

    Raises:
        MediaUploadError: If the bytes are not an image.
    """
    try:
        image = Image.open(io.BytesIO(data))
        image = ImageOps.exif_transpose(image)
    except (UnidentifiedImageError, OSError) as e:
        raise MediaUploadError(f"Not a valid image: {e}") from e

    if image.mode != "RGB":
        image = image.convert("RGB")
    image.thumbnail((MAX_DIMENSION, MAX_DIMENSION))

    quality = START_QUALITY
    while True:
        buffer = io.BytesIO()
        image.save(buffer, format="JPEG", quality=quality, optimize=True)
        output = buffer.getvalue()
        if len(output) <= MAX_BYTES or quality <= MIN_QUALITY:
            break
        quality -= QUALITY_STEP

    logger.debug("Compressed image %d -> %d bytes (quality %d)", len(data), len(output), quality)
    return output


class MediaUploader:
    """Uploads images to Cloudinary.

    Signed uploads are used when an API key and secret are configured,
    otherwise an unsigned upload preset is required.
    """

    def __init__(self, config: AppConfig):
        self.config = config
        if config.cloudinary_cloud_name:
            cloudinary.config(
                cloud_name=config.cloudinary_cloud_name,
                api_key=config.cloudinary_api_key,
                api_secret=config.cloudinary_api_secret,
                secure=True,
            )

    @property
    def enabled(self) -> bool:
        return self.config.media_enabled

    def upload(self, data: bytes, filename: Optional[str] = None) -> str:
        """Upload an image and return its HTTPS URL.

        Args:
            data: Image bytes, usually from ``compress_image``.
            filename: Original file name, used for logging only.

        Returns:
            The ``secure_url`` of the uploaded asset.

        Raises:
            ConfigurationError: If Cloudinary is not configured.
            MediaUploadError: If the upload fails.
        """
        if not self.enabled:
            raise ConfigurationError(
                "Cloudinary configuration missing. Please set CLOUDINARY_CLOUD_NAME "
                "and CLOUDINARY_UPLOAD_PRESET."
            )

        file = io.BytesIO(data)
        try:
            if self.config.cloudinary_api_key and self.config.cloudinary_api_secret:
                result = cloudinary.uploader.upload(file, folder=UPLOAD_FOLDER, resource_type="image")
            else:
                result = cloudinary.uploader.unsigned_upload(
                    file,
                    self.config.cloudinary_upload_preset,
                    folder=UPLOAD_FOLDER,
                    resource_type="image",
                )
        except cloudinary.exceptions.Error as e:
            logger.error("Cloudinary upload of %s failed: %s", filename or "image", e)
            raise MediaUploadError(str(e) or "Cloudinary upload failed") from e

        url = result.get("secure_url")
        if not url:
            raise MediaUploadError("Cloudinary upload failed")
        logger.info("Uploaded %s to %s", filename or "image", url)
        return url

    def upload_image(self, data: bytes, filename: Optional[str] = None) -> str:
        """Compress a photo from an upload widget and upload it."""
        return self.upload(compress_image(data), filename)
