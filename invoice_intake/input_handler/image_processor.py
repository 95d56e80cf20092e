"""
Image Processor Module.

Prepares invoice photos and scans for Tesseract:
    - Decoding from raw bytes
    - EXIF orientation correction
    - RGB conversion (alpha flattened onto white)
    - Downscaling of oversized captures
    - Mild contrast and sharpness enhancement

Supports: JPG, JPEG, PNG, TIFF, BMP, WEBP
"""

import io
from typing import Tuple

from PIL import Image, ImageEnhance, ImageOps, UnidentifiedImageError

from config import get_config
from invoice_intake.utils.logger import get_logger
from invoice_intake.utils.exceptions import CorruptedFileError

logger = get_logger(__name__)


class ImageProcessor:
    """
    Normalizes invoice images before OCR.

    Attributes:
        max_width: Maximum image width in pixels
        max_height: Maximum image height in pixels
        min_size: (width, height) below which a warning is logged
        auto_orient: Whether to apply the EXIF orientation
        enhance_contrast: Whether to apply contrast/sharpness enhancement

    Example:
        >>> processor = ImageProcessor()
        >>> image = processor.process(data, "ticket.jpg")
    """

    def __init__(self) -> None:
        """Initialize the image processor with configuration."""
        self.max_width = get_config("input.image.max_width", 2480)
        self.max_height = get_config("input.image.max_height", 3508)
        self.min_size: Tuple[int, int] = (
            get_config("input.image.min_width", 500),
            get_config("input.image.min_height", 500),
        )
        self.auto_orient = get_config("input.image.auto_orient", True)
        self.enhance_contrast = get_config("input.image.enhance_contrast", True)

        logger.debug(
            f"ImageProcessor initialized (max_size={self.max_width}x{self.max_height}, "
            f"enhance={self.enhance_contrast})"
        )

    def load(self, data: bytes, name: str = "<memory>") -> Image.Image:
        """
        Decode raw bytes into a PIL image.

        Raises:
            CorruptedFileError: If the bytes are not a readable image.
        """
        try:
            image = Image.open(io.BytesIO(data))
            image.load()
        except (UnidentifiedImageError, OSError) as e:
            raise CorruptedFileError(name, f"Unreadable image: {e}")
        return image

    def process(self, data: bytes, name: str = "<memory>") -> Image.Image:
        """
        Decode and prepare an image for OCR.

        Processing steps:
            1. Fix orientation from EXIF
            2. Convert to RGB
            3. Resize if too large
            4. Enhance contrast (optional)

        Args:
            data: Raw image bytes.
            name: File name used in log and error messages.

        Returns:
            Processed PIL Image.

        Raises:
            CorruptedFileError: If the image cannot be decoded.
        """
        image = self.load(data, name)
        original_size = image.size

        image = self.prepare(image)

        logger.info(
            f"Prepared image {name}: {image.width}x{image.height} "
            f"(original: {original_size[0]}x{original_size[1]})"
        )
        return image

    def prepare(self, image: Image.Image) -> Image.Image:
        """Apply the OCR preparation steps to an already decoded image."""
        if self.auto_orient:
            image = ImageOps.exif_transpose(image)

        image = self._convert_to_rgb(image)
        image = self._resize_if_needed(image)

        if self.enhance_contrast:
            image = self._enhance_image(image)

        width, height = image.size
        if width < self.min_size[0] or height < self.min_size[1]:
            # Small receipts can still be readable
            logger.warning(
                f"Image size {width}x{height} below minimum "
                f"{self.min_size[0]}x{self.min_size[1]}"
            )

        return image

    def _convert_to_rgb(self, image: Image.Image) -> Image.Image:
        if image.mode == 'RGB':
            return image

        if image.mode in ('RGBA', 'LA'):
            background = Image.new('RGB', image.size, (255, 255, 255))
            background.paste(image, mask=image.getchannel('A'))
            return background

        return image.convert('RGB')

    def _resize_if_needed(self, image: Image.Image) -> Image.Image:
        """Downscale keeping the aspect ratio when over the configured maximum."""
        width, height = image.size
        if width <= self.max_width and height <= self.max_height:
            return image

        ratio = min(self.max_width / width, self.max_height / height)
        new_size = (int(width * ratio), int(height * ratio))
        logger.debug(f"Resized image from {width}x{height} to {new_size[0]}x{new_size[1]}")
        return image.resize(new_size, Image.LANCZOS)

    def _enhance_image(self, image: Image.Image) -> Image.Image:
        image = ImageEnhance.Contrast(image).enhance(1.2)
        return ImageEnhance.Sharpness(image).enhance(1.1)
