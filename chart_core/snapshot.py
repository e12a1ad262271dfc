"""Композиція знімка графіка: базовий canvas провайдера + поверхня оверлею."""

from __future__ import annotations

import base64
import io

from PIL import Image


def composite_layers(base: Image.Image, overlay: Image.Image | None) -> Image.Image:
    """Накладає оверлей поверх бази (у координатах 0,0), розмір = розмір бази."""

    if base.width <= 0 or base.height <= 0:
        raise ValueError("порожній базовий знімок")
    composite = base.convert("RGBA")
    if overlay is None:
        return composite
    layer = overlay.convert("RGBA")
    if layer.size != composite.size:
        # crop за межі доповнює прозорими пікселями
        layer = layer.crop((0, 0, composite.width, composite.height))
    composite.alpha_composite(layer)
    return composite


def encode_png_data_url(image: Image.Image) -> str:
    """PNG → `data:image/png;base64,...`."""

    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
    return f"data:image/png;base64,{encoded}"


def decode_png_data_url(data_url: str) -> Image.Image:
    """Зворотне перетворення (для інструментів/тестів)."""

    prefix = "data:image/png;base64,"
    if not data_url.startswith(prefix):
        raise ValueError("очікується data URL з PNG")
    raw = base64.b64decode(data_url[len(prefix) :])
    image = Image.open(io.BytesIO(raw))
    image.load()
    return image


__all__ = ("composite_layers", "encode_png_data_url", "decode_png_data_url")
