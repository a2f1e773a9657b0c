import os
import time
import uuid
from io import BytesIO
from PIL import Image, ImageOps, UnidentifiedImageError
import logging
from errors import ValidationError

logger = logging.getLogger(__name__)

MAX_DIMENSION = 1920
START_QUALITY = 90
MIN_QUALITY = 20
ALLOWED_FORMATS = ('JPEG', 'PNG')


def validate_image(data, max_bytes):
    """
    Check an uploaded photo before any processing.

    Args:
        data: Raw file bytes
        max_bytes: Upload size limit

    Returns:
        String: Pillow format name ('JPEG' or 'PNG')
    """
    if not data:
        raise ValidationError("No image data received")
    if len(data) > max_bytes:
        raise ValidationError(f"Image is too large. Maximum size is {max_bytes // (1024 * 1024)}MB")
    try:
        with Image.open(BytesIO(data)) as img:
            fmt = img.format
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError):
        raise ValidationError("File is not a valid image")
    if fmt not in ALLOWED_FORMATS:
        raise ValidationError("Only JPEG and PNG images are allowed")
    return fmt


def _encode_jpeg(img, quality):
    buf = BytesIO()
    img.save(buf, 'JPEG', quality=quality, optimize=True)
    return buf.getvalue()


def compress_image(data, target_bytes, max_dimension=MAX_DIMENSION):
    """
    Shrink a photo to fit max_dimension x max_dimension and re-encode it as JPEG,
    lowering quality until the result fits in target_bytes or MIN_QUALITY is reached.

    Returns:
        Bytes of the JPEG image
    """
    with Image.open(BytesIO(data)) as img:
        img = ImageOps.exif_transpose(img)
        if img.mode in ('RGBA', 'LA', 'P'):
            # Flatten transparency onto white; JPEG has no alpha channel
            rgba = img.convert('RGBA')
            background = Image.new('RGB', rgba.size, (255, 255, 255))
            background.paste(rgba, mask=rgba.split()[-1])
            img = background
        elif img.mode != 'RGB':
            img = img.convert('RGB')

        # thumbnail keeps the aspect ratio and never enlarges
        img.thumbnail((max_dimension, max_dimension), Image.Resampling.LANCZOS)

        quality = START_QUALITY
        encoded = _encode_jpeg(img, quality)
        while len(encoded) > target_bytes and quality > MIN_QUALITY:
            scaled = int(quality * (target_bytes / len(encoded)) * 0.9)
            quality = max(MIN_QUALITY, min(scaled, quality - 5))
            encoded = _encode_jpeg(img, quality)

    logger.info(f"Compressed image {len(data)} -> {len(encoded)} bytes at quality {quality}")
    return encoded


def save_customer_image(upload_folder, customer_id, image_order, jpeg_bytes):
    """
    Write a processed photo under UPLOAD_FOLDER/customers/<customer_id>/.

    Returns:
        String: Path relative to upload_folder
    """
    relative_path = f"customers/{customer_id}/image-{image_order}-{int(time.time())}-{uuid.uuid4().hex[:8]}.jpg"
    full_path = os.path.join(upload_folder, relative_path)
    os.makedirs(os.path.dirname(full_path), exist_ok=True)
    with open(full_path, 'wb') as fh:
        fh.write(jpeg_bytes)
    return relative_path


def remove_stored_image(upload_folder, relative_path):
    """Delete a stored photo; a file that is already gone is not an error"""
    full_path = os.path.join(upload_folder, relative_path)
    try:
        os.remove(full_path)
    except FileNotFoundError:
        logger.warning(f"Image file already missing: {relative_path}")
