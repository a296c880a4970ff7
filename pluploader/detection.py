"""
Content-Type detection for assembled uploads.
Sniffs the MIME type from the bytes themselves using libmagic.
"""

import asyncio
from typing import Awaitable, Callable

import magic

Detector = Callable[[bytes], Awaitable[str]]

def sniff_mime_type(data: bytes) -> str:
    """
    Detect the MIME type of a byte sequence.

    Args:
        data: Complete file contents

    Returns:
        MIME type string (e.g., "image/png", "application/pdf")

    Examples:
        >>> sniff_mime_type(b"%PDF-1.4 ...")
        'application/pdf'
    """
    return magic.from_buffer(data, mime=True)

async def detect_mime_type(data: bytes) -> str:
    """Async wrapper, libmagic runs in a worker thread to keep the loop free."""
    return await asyncio.to_thread(sniff_mime_type, data)
