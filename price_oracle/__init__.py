from .oracle import FilePriceOracle, FixedPriceOracle, PriceOracle, PriceUnavailableError

__all__ = [
    "FilePriceOracle",
    "FixedPriceOracle",
    "PriceOracle",
    "PriceUnavailableError",
]
