"""Per-channel ADC metric evaluation, aggregation and plotting."""

__version__ = "0.1.0"
