"""
Receipt Image Service using Pillow

Receipts are attached to transactions as embedded data URLs and sent to
the advisor for scanning. This service:
1. Checks the upload (size, format)
2. Assesses image quality
3. Downsizes and re-encodes so the embedded image stays small
4. Returns a ReceiptImage ready for both uses

CRITICAL: We do NOT trust a bill scan on a poor quality image.
If quality is too low, we STOP and ask the user to retake.
"""

import base64
from io import BytesIO
from pathlib import Path
from typing import Optional

from PIL import Image, ImageOps, UnidentifiedImageError

from fintrack.config import AppSettings, get_settings
from fintrack.models.insights import ImageQuality, ReceiptImage


JPEG_QUALITY = 85


class ReceiptImageError(Exception):
    """Base exception for receipt image errors."""
    pass


class ImageRejectedError(ReceiptImageError):
    """Upload refused before any processing (size, format, unreadable)."""
    pass


class ReceiptImageService:
    """
    Prepares receipt photos.

    Flow:
    1. Receive raw image bytes
    2. Reject oversized or unsupported uploads
    3. Assess quality of the original
    4. Return a downsized JPEG data URL with the assessment
    """

    def __init__(self, settings: Optional[AppSettings] = None):
        self._settings = settings or get_settings().app

    def validate_upload(self, image_bytes: bytes, filename: str) -> None:
        """
        Raises:
            ImageRejectedError: If the upload is empty, too large or not a supported format
        """
        if not image_bytes:
            raise ImageRejectedError("The uploaded file is empty")

        if len(image_bytes) > self._settings.max_upload_size_bytes:
            raise ImageRejectedError(
                f"File is {len(image_bytes) / (1024 * 1024):.1f} MB; "
                f"the limit is {self._settings.max_upload_size_mb} MB"
            )

        extension = Path(filename).suffix.lower().lstrip(".")
        if extension not in self._settings.supported_formats_list:
            raise ImageRejectedError(
                f"Unsupported file type '.{extension}'. "
                f"Use one of: {', '.join(self._settings.supported_formats_list)}"
            )

    def assess_quality(
        self,
        image_bytes: bytes,
    ) -> tuple[ImageQuality, float, list[str]]:
        """
        Assess image quality using PIL.

        Returns: (quality_enum, quality_score, list_of_issues)

        DESIGN DECISION: We use simple heuristics rather than ML-based quality
        assessment because:
        1. Lower latency
        2. More predictable behavior
        3. No additional API costs
        """
        issues = []
        score = 1.0

        try:
            img = Image.open(BytesIO(image_bytes))
            width, height = img.size

            # Check resolution
            min_dimension = min(width, height)
            if min_dimension < 300:
                issues.append("Image resolution too low (minimum 300px on smallest side)")
                score -= 0.4
            elif min_dimension < 500:
                issues.append("Image resolution is low, text may be hard to read")
                score -= 0.2

            # Very long strips are usually mis-cropped
            aspect = max(width, height) / min(width, height)
            if aspect > 5:
                issues.append("Unusual aspect ratio - image may be cropped incorrectly")
                score -= 0.2

            gray = img if img.mode == "L" else img.convert("L")
            histogram = gray.histogram()
            total_pixels = sum(histogram)

            dark_pixels = sum(histogram[:50]) / total_pixels
            if dark_pixels > 0.7:
                issues.append("Image is very dark - please take photo in better lighting")
                score -= 0.3

            bright_pixels = sum(histogram[200:]) / total_pixels
            if bright_pixels > 0.7:
                issues.append("Image is overexposed - please reduce lighting or angle")
                score -= 0.3

            # Range of pixel values holding the middle 90% of pixels
            cumsum = 0
            low_percentile = None
            high_percentile = 255
            for i, count in enumerate(histogram):
                cumsum += count
                if low_percentile is None and cumsum >= total_pixels * 0.05:
                    low_percentile = i
                if cumsum >= total_pixels * 0.95:
                    high_percentile = i
                    break

            if high_percentile - (low_percentile or 0) < 50:
                issues.append("Image has very low contrast - text may be hard to read")
                score -= 0.25

        except (UnidentifiedImageError, OSError, ValueError) as e:
            issues.append(f"Could not analyze image: {e}")
            score = 0.0

        score = max(0.0, min(1.0, score))

        if score >= 0.7:
            quality = ImageQuality.GOOD
        elif score >= 0.5:
            quality = ImageQuality.ACCEPTABLE
        elif score >= 0.3:
            quality = ImageQuality.POOR
        else:
            quality = ImageQuality.UNUSABLE

        return quality, score, issues

    def prepare(self, image_bytes: bytes, filename: str) -> ReceiptImage:
        """
        Validate, assess and shrink a receipt photo.

        Raises:
            ImageRejectedError: If the upload is refused or cannot be decoded
        """
        self.validate_upload(image_bytes, filename)
        quality, score, issues = self.assess_quality(image_bytes)

        try:
            img = Image.open(BytesIO(image_bytes))
            img = ImageOps.exif_transpose(img)
            if img.mode != "RGB":
                img = img.convert("RGB")

            limit = self._settings.receipt_max_dimension_px
            img.thumbnail((limit, limit))

            buffer = BytesIO()
            img.save(buffer, format="JPEG", quality=JPEG_QUALITY, optimize=True)
        except (UnidentifiedImageError, OSError, ValueError) as e:
            raise ImageRejectedError(f"Could not read image: {e}") from e

        encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
        return ReceiptImage(
            data_url=f"data:image/jpeg;base64,{encoded}",
            mime_type="image/jpeg",
            width=img.width,
            height=img.height,
            quality_assessment=quality,
            quality_score=score,
            quality_issues=issues,
        )

    @staticmethod
    def decode(receipt: ReceiptImage) -> bytes:
        """Raw bytes of the prepared image, for sending to the advisor."""
        _, _, payload = receipt.data_url.partition(",")
        return base64.b64decode(payload)

    def should_proceed_with_scan(self, receipt: ReceiptImage) -> tuple[bool, str]:
        """
        Determine if we should send the image to the advisor.

        Returns: (should_proceed, message_for_user)

        DESIGN DECISION: We are conservative here.
        Better to ask user to retake than to scan garbage.
        """
        min_score = self._settings.min_image_quality_score

        if receipt.quality_assessment == ImageQuality.UNUSABLE:
            return False, (
                "❌ This image cannot be processed. "
                "Please take a clearer photo with better lighting."
            )

        if receipt.quality_assessment == ImageQuality.POOR:
            return False, (
                "⚠️ Image quality is too low for reliable reading. "
                f"Issues detected: {', '.join(receipt.quality_issues)}. "
                "Please take a clearer photo."
            )

        if receipt.quality_score < min_score:
            return False, (
                f"⚠️ Image quality score ({receipt.quality_score:.0%}) is below "
                f"minimum threshold ({min_score:.0%}). "
                "Please take a clearer photo."
            )

        if receipt.quality_assessment == ImageQuality.ACCEPTABLE and receipt.quality_issues:
            return True, (
                "📷 Image quality is acceptable but not ideal. "
                "Some details may be missed. "
                f"Tips: {', '.join(receipt.quality_issues)}"
            )

        return True, "✅ Image quality is good. Reading the receipt."
