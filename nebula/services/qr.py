from io import BytesIO
from typing import Optional

import qrcode
from qrcode.constants import ERROR_CORRECT_M

from nebula.config import get_settings


def render_qr_png(token: str, size: Optional[int] = None) -> bytes:
    """Render a QR code PNG roughly `size` pixels wide. Display only."""
    size = size or get_settings().qr_image_size

    qr = qrcode.QRCode(error_correction=ERROR_CORRECT_M, border=1)
    qr.add_data(token)
    qr.make(fit=True)
    qr.box_size = max(1, size // (qr.modules_count + 2 * qr.border))

    img = qr.make_image(fill_color="black", back_color="white")
    buffer = BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()
