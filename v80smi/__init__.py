"""Library for V80 accelerator cards: design archives, reports, listing, queries and DMA validation."""

__version__ = "1.0.0"
__all__ = ["__version__"]