from .coingecko import CoingeckoProvider, TokenPrice
from .zerox import ZeroExProvider

__all__ = ["CoingeckoProvider", "TokenPrice", "ZeroExProvider"]
