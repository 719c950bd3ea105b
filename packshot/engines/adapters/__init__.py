"""
External transform adapters: background removal and generative inpainting.
"""

from packshot.engines.adapters.retry import (
    CancellationToken,
    RetryPolicy,
    RetryExhausted,
    call_with_retries,
)
from packshot.engines.adapters.background import (
    BackgroundRemover,
    HttpBackgroundRemover,
    RemoveBgRemover,
    PoofRemover,
    BackgroundRemovalAdapter,
    build_remover,
)
from packshot.engines.adapters.inpaint import InpaintAdapter

__all__ = [
    "CancellationToken",
    "RetryPolicy",
    "RetryExhausted",
    "call_with_retries",
    "BackgroundRemover",
    "HttpBackgroundRemover",
    "RemoveBgRemover",
    "PoofRemover",
    "BackgroundRemovalAdapter",
    "build_remover",
    "InpaintAdapter",
]
