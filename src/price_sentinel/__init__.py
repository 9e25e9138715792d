"""price-sentinel: threshold price alerts delivered over Telegram."""

__version__ = "0.1.0"
