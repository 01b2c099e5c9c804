"""Terminal rendering of the device-pairing QR code."""

import io
import sys
from typing import Optional, TextIO

import qrcode

PAIRING_INSTRUCTIONS = (
    "Scan this code with WhatsApp on the business phone: "
    "Settings > Linked Devices > Link a Device"
)


def render_pairing_code(qr_data: str) -> str:
    """Render QR payload as block characters that a phone camera can scan."""
    qr = qrcode.QRCode(border=2, error_correction=qrcode.ERROR_CORRECT_L)
    qr.add_data(qr_data)
    qr.make(fit=True)

    buffer = io.StringIO()
    qr.print_ascii(out=buffer)
    return buffer.getvalue()


def print_pairing_code(qr_data: str, out: Optional[TextIO] = None) -> None:
    out = out or sys.stdout
    out.write(f"\n{PAIRING_INSTRUCTIONS}\n\n")
    out.write(render_pairing_code(qr_data))
    out.write("\n")
    out.flush()
