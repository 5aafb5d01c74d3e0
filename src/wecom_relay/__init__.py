"""WeCom relay: callback verification and API bridging for WeCom."""

__version__ = "0.1.0"
