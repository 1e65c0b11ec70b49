"""
Menu Lens – turn menu photos into structured, translated menus.

The package chains interchangeable text recognition providers (OCR) and
generation providers (LLMs) behind two orchestration facades, then enriches
the normalized menu with stock photos in small paced batches.
"""

__all__ = [
    "api",
    "cli",
    "config",
    "domain",
    "errors",
    "logging",
    "orchestrator",
    "providers",
]

__version__ = "0.1.0"
