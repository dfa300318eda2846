# Overview: Service-layer operations for QR rendering of certificate verification payloads.

from __future__ import annotations

import base64
import io
from typing import Protocol

import qrcode
from flask import current_app


EXTENSION_KEY = "halalcert.qr_renderer"


class QrRenderer(Protocol):
    def render_qr(self, payload: str) -> str:
        ...


class PngQrRenderer:
    """Renders the payload as a PNG and returns it as a data URI."""

    def __init__(self, box_size: int = 10, border: int = 4):
        self.box_size = box_size
        self.border = border

    def render_qr(self, payload: str) -> str:
        qr = qrcode.QRCode(
            version=1,
            error_correction=qrcode.constants.ERROR_CORRECT_L,
            box_size=self.box_size,
            border=self.border,
        )
        qr.add_data(payload)
        qr.make(fit=True)

        img = qr.make_image(fill_color="black", back_color="white")
        buffer = io.BytesIO()
        img.save(buffer, format="PNG")
        encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
        return f"data:image/png;base64,{encoded}"


def get_renderer() -> QrRenderer:
    renderer = current_app.extensions.get(EXTENSION_KEY)
    if renderer is None:
        renderer = PngQrRenderer()
        current_app.extensions[EXTENSION_KEY] = renderer
    return renderer


def render_or_none(payload: str) -> str | None:
    """The QR image is decoration on a read; a rendering failure drops it and keeps the answer."""
    try:
        return get_renderer().render_qr(payload)
    except Exception:
        current_app.logger.warning("QR rendering failed for %s", payload, exc_info=True)
        return None
