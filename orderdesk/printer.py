"""ESC/POS receipt printing through a USB thermal printer."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from orderdesk.config import (
    PRINTER_FONT_PATH,
    PRINTER_FONT_SIZE,
    PRINTER_LEFT_INDENT_PX,
    PRINTER_USB_PRODUCT_ID,
    PRINTER_USB_VENDOR_ID,
    PRINTER_WIDTH_PX,
)
from orderdesk.models import Order
from orderdesk.receipt import receipt_lines

logger = logging.getLogger(__name__)

_LINE_EXTRA_PX = 8
_TAIL_SPACER_PX = 60
_FONT_OVERRIDE_ENV = "ORDERDESK_PRINTER_FONT_PATH"
_LINUX_FONT_FALLBACKS = (
    "/usr/share/fonts/truetype/dejavu/DejaVuSansMono.ttf",
    "/usr/share/fonts/TTF/DejaVuSansMono.ttf",
    "/usr/share/fonts/dejavu/DejaVuSansMono.ttf",
    "/usr/share/fonts/liberation/LiberationMono-Regular.ttf",
)


def resolve_printer_font_path() -> str:
    """
    Resolve a monospace printer font path.

    Resolution order:
    1. ORDERDESK_PRINTER_FONT_PATH (if set)
    2. PRINTER_FONT_PATH
    3. Known Linux fallbacks
    """
    env_override = os.environ.get(_FONT_OVERRIDE_ENV, "").strip()
    candidates: list[str] = []
    if env_override:
        candidates.append(env_override)
    candidates.append(PRINTER_FONT_PATH)
    candidates.extend(_LINUX_FONT_FALLBACKS)

    seen: set[str] = set()
    for candidate in candidates:
        if not candidate or candidate in seen:
            continue
        seen.add(candidate)
        if Path(candidate).is_file():
            return candidate

    raise RuntimeError(
        f"No usable printer font found. Set {_FONT_OVERRIDE_ENV} to a valid .ttf/.otf file. "
        f"Tried: {', '.join(seen)}"
    )


def check_printer_dependencies() -> tuple[bool, str]:
    """Check whether printer dependencies are importable and a font resolves."""
    try:
        from escpos.printer import Usb  # noqa: F401
        from PIL import ImageFont

        font_path = resolve_printer_font_path()
        ImageFont.truetype(font_path, PRINTER_FONT_SIZE)
    except Exception as exc:
        return (False, f"Printer unavailable: {exc}")
    return (True, "Printer ready")


def render_receipt_image(lines: list[str], font: object) -> object:
    """Draw receipt lines top to bottom onto one 1-bit image."""
    from PIL import Image, ImageDraw

    probe = Image.new("1", (1, 1), color=1)
    probe_draw = ImageDraw.Draw(probe)
    line_height = max(1, probe_draw.textbbox((0, 0), "Ag", font=font)[3]) + _LINE_EXTRA_PX
    canvas_height = line_height * max(1, len(lines)) + _TAIL_SPACER_PX

    img = Image.new("1", (PRINTER_WIDTH_PX, canvas_height), color=1)
    draw = ImageDraw.Draw(img)
    y = 0
    for line in lines:
        draw.text((PRINTER_LEFT_INDENT_PX, y), line, font=font, fill=0)
        y += line_height
    return img


def print_receipt(order: Order, restaurant_name: str | None = None) -> None:
    """Print a bill for the order and cut the paper."""
    try:
        from escpos.printer import Usb
        from PIL import ImageFont
    except Exception as exc:
        raise RuntimeError(f"Printer dependencies unavailable: {exc}") from exc

    lines = receipt_lines(order) if restaurant_name is None else receipt_lines(order, restaurant_name)
    font = ImageFont.truetype(resolve_printer_font_path(), PRINTER_FONT_SIZE)
    printer = Usb(PRINTER_USB_VENDOR_ID, PRINTER_USB_PRODUCT_ID)
    printer.image(render_receipt_image(lines, font))
    printer.cut()
    logger.info("printed receipt for order #%d (%d lines)", order.id, len(lines))
