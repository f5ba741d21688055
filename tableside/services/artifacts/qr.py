"""
QR Code Rendering

Turns a destination URL into a PNG image with the `qrcode` library.
"""

import io

import qrcode
from qrcode.constants import ERROR_CORRECT_L


def render_qr_png(data: str, box_size: int = 10, border: int = 4) -> bytes:
    """
    Render `data` as a black-on-white QR code.

    Args:
        data: Text to encode (usually a menu URL)
        box_size: Pixels per module
        border: Quiet zone width in modules

    Returns:
        bytes: PNG image
    """
    qr = qrcode.QRCode(
        version=None,  # smallest version that fits
        error_correction=ERROR_CORRECT_L,
        box_size=box_size,
        border=border,
    )
    qr.add_data(data)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")

    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()
