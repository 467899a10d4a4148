import io

import qrcode
from qrcode.constants import ERROR_CORRECT_H, ERROR_CORRECT_L, ERROR_CORRECT_M, ERROR_CORRECT_Q
from qrcode.exceptions import DataOverflowError
from qrcode.image.pil import PilImage

from ..core.exceptions import QRCodeError

ERROR_CORRECTION_LEVELS = {
    "L": ERROR_CORRECT_L,
    "M": ERROR_CORRECT_M,
    "Q": ERROR_CORRECT_Q,
    "H": ERROR_CORRECT_H,
}
QR_BORDER = 4  # quiet zone, in modules


def render_qr_png(data: str, error_correction: str = "M", size: int = 256) -> bytes:
    """
    Render data as a QR code PNG.

    Args:
        data: Text to encode, typically the full short URL
        error_correction: One of L, M, Q, H
        size: Target image width in pixels; the result is the largest
            whole-pixel module size that fits

    Returns:
        PNG image bytes

    Raises:
        ValueError: If the error correction level is unknown
        QRCodeError: If the data cannot be encoded
    """
    level = ERROR_CORRECTION_LEVELS.get(error_correction.upper())
    if level is None:
        raise ValueError(f"Unknown error correction level: {error_correction}")

    qr = qrcode.QRCode(error_correction=level, border=QR_BORDER, image_factory=PilImage)
    try:
        qr.add_data(data)
        qr.make(fit=True)
    except (DataOverflowError, ValueError) as e:
        raise QRCodeError("Data too long for a QR code") from e

    qr.box_size = max(1, size // (qr.modules_count + 2 * QR_BORDER))

    img = qr.make_image(fill_color="black", back_color="white")
    buf = io.BytesIO()
    try:
        img.save(buf, format="PNG")
    except (OSError, ValueError) as e:
        raise QRCodeError(f"Failed to encode QR code as PNG: {e}") from e

    return buf.getvalue()
