"""Aggregator endpoints and token metadata for swaps."""

from __future__ import annotations

from typing import Dict, Tuple

from .models import SwapToken

# Placeholder the aggregator uses for the chain's native asset
NATIVE_TOKEN_ADDRESS = '0xEeeeeEeeeEeEeeEeEeEeeEEEeeeeEeeeeeeeEEeE'

# Aggregator API per chain. Test networks are not served.
ZEROX_API_URLS: Dict[int, str] = {
    1: 'https://api.0x.org',
    137: 'https://polygon.api.0x.org',
    42161: 'https://arbitrum.api.0x.org',
    10: 'https://optimism.api.0x.org',
    8453: 'https://base.api.0x.org',
}

# Wrapped native token per chain (WMATIC on Polygon)
WETH_ADDRESSES: Dict[int, str] = {
    1: '0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2',
    137: '0x0d500B1d8E8eF31E21C99d1Db9A6444d3ADf1270',
    42161: '0x82aF49447D8a07e3bd95BD0d56f35241523fBab1',
    10: '0x4200000000000000000000000000000000000006',
    8453: '0x4200000000000000000000000000000000000006',
}

_LOGO = 'https://assets.coingecko.com/coins/images'


def _native(symbol: str, name: str, logo: str, coingecko_id: str | None) -> SwapToken:
    return SwapToken(
        symbol=symbol,
        name=name,
        address=NATIVE_TOKEN_ADDRESS,
        decimals=18,
        logo_url=f'{_LOGO}/{logo}',
        is_native=True,
        coingecko_id=coingecko_id,
    )


def _token(symbol: str, name: str, address: str, decimals: int, logo: str, coingecko_id: str) -> SwapToken:
    return SwapToken(
        symbol=symbol,
        name=name,
        address=address,
        decimals=decimals,
        logo_url=f'{_LOGO}/{logo}',
        coingecko_id=coingecko_id,
    )


_ETH_LOGO = '279/small/ethereum.png'
_USDC_LOGO = '6319/small/usdc.png'
_USDT_LOGO = '325/small/Tether.png'
_WETH_LOGO = '2518/small/weth.png'

# Swappable tokens per chain; the native asset always comes first.
SWAP_TOKENS: Dict[int, Tuple[SwapToken, ...]] = {
    1: (
        _native('ETH', 'Ethereum', _ETH_LOGO, 'ethereum'),
        _token('USDC', 'USD Coin', '0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48', 6, _USDC_LOGO, 'usd-coin'),
        _token('USDT', 'Tether', '0xdAC17F958D2ee523a2206206994597C13D831ec7', 6, _USDT_LOGO, 'tether'),
        _token('WETH', 'Wrapped Ether', '0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2', 18, _WETH_LOGO, 'weth'),
        _token('DAI', 'Dai', '0x6B175474E89094C44Da98b954EedeAC495271d0F', 18,
               '9956/small/dai-multi-collateral-mcd.png', 'dai'),
        _token('WBTC', 'Wrapped Bitcoin', '0x2260FAC5E5542a773Aa44fBCfeDf7C193bc2C599', 8,
               '7598/small/wrapped_bitcoin_wbtc.png', 'wrapped-bitcoin'),
        _token('UNI', 'Uniswap', '0x1f9840a85d5aF5bf1D1762F925BDADdC4201F984', 18,
               '12504/small/uniswap-uni.png', 'uniswap'),
        _token('LINK', 'Chainlink', '0x514910771AF9Ca656af840dff83E8264EcF986CA', 18,
               '877/small/chainlink-new-logo.png', 'chainlink'),
        _token('AAVE', 'Aave', '0x7Fc66500c84A76Ad7e9c93437bFc5Ac33E2DDaE9', 18,
               '12645/small/AAVE.png', 'aave'),
        _token('MATIC', 'Polygon', '0x7D1AfA7B718fb893dB30A3aBc0Cfc608AaCfeBB0', 18,
               '4713/small/polygon.png', 'matic-network'),
    ),
    137: (
        _native('MATIC', 'Polygon', '4713/small/polygon.png', 'matic-network'),
        _token('USDC', 'USD Coin', '0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174', 6, _USDC_LOGO, 'usd-coin'),
        _token('USDT', 'Tether', '0xc2132D05D31c914a87C6611C10748AEb04B58e8F', 6, _USDT_LOGO, 'tether'),
        _token('WETH', 'Wrapped Ether', '0x7ceB23fD6bC0adD59E62ac25578270cFf1b9f619', 18, _WETH_LOGO, 'weth'),
        _token('WMATIC', 'Wrapped Matic', '0x0d500B1d8E8eF31E21C99d1Db9A6444d3ADf1270', 18,
               '14073/small/matic.png', 'wmatic'),
        _token('QUICK', 'QuickSwap', '0x831753DD7087CaC61aB5644b308642cc1c33Dc13', 18,
               '13970/small/1_pTgHamA.png', 'quickswap'),
    ),
    42161: (
        _native('ETH', 'Ethereum', _ETH_LOGO, 'ethereum'),
        _token('USDC', 'USD Coin', '0xaf88d065e77c8cC2239327C5EDb3A432268e5831', 6, _USDC_LOGO, 'usd-coin'),
        _token('USDT', 'Tether', '0xFd086bC7CD5C481DCC9C85ebE478A1C0b69FCbb9', 6, _USDT_LOGO, 'tether'),
        _token('ARB', 'Arbitrum', '0x912CE59144191C1204E64559FE8253a0e49E6548', 18,
               '16547/small/photo_2023-03-29_21.47.00.jpeg', 'arbitrum'),
        _token('GMX', 'GMX', '0xfc5A1A6EB076a2C7aD06eD22C90d7E710E35ad0a', 18,
               '18323/small/arbit.png', 'gmx'),
        _token('MAGIC', 'Magic', '0x539bdE0d7Dbd336b79148AA742883198BBF60342', 18,
               '18623/small/magic.png', 'magic'),
    ),
    10: (
        _native('ETH', 'Ethereum', _ETH_LOGO, 'ethereum'),
        _token('USDC', 'USD Coin', '0x7F5c764cBc14f9669B88837ca1490cCa17c31607', 6, _USDC_LOGO, 'usd-coin'),
        _token('OP', 'Optimism', '0x4200000000000000000000000000000000000042', 18,
               '25244/small/Optimism.png', 'optimism'),
        _token('VELO', 'Velodrome', '0x3c8B650257cFb5f272f799F5e2b4e65093a11a05', 18,
               '25783/small/velo.png', 'velodrome-finance'),
    ),
    8453: (
        _native('ETH', 'Ethereum', _ETH_LOGO, 'ethereum'),
        _token('USDC', 'USD Coin', '0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913', 6, _USDC_LOGO, 'usd-coin'),
        _token('cbETH', 'Coinbase Wrapped Staked ETH', '0x2Ae3F1Ec7F1F5012CFEab0185bfc7aa3cf0DEc22', 18,
               '27008/small/cbeth.png', 'coinbase-wrapped-staked-eth'),
    ),
    # Listed for the token picker; quotes are unavailable on testnets
    11155111: (
        _native('ETH', 'Sepolia ETH', _ETH_LOGO, None),
    ),
}

# Used to price gas in USD
GAS_PRICE_COINGECKO_ID = 'ethereum'
