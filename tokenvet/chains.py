import re
from typing import Dict, Optional

import base58

from .errors import UnsupportedChainError
from .models import Chain


_CHAIN_ALIASES: Dict[str, Chain] = {
    "solana": Chain.SOLANA,
    "sol": Chain.SOLANA,
    "ethereum": Chain.ETHEREUM,
    "eth": Chain.ETHEREUM,
    "bsc": Chain.BSC,
    "binance": Chain.BSC,
    "bnb": Chain.BSC,
    "base": Chain.BASE,
    "sui": Chain.SUI,
    "aptos": Chain.APTOS,
    "near": Chain.NEAR,
    "osmosis": Chain.OSMOSIS,
    "osmo": Chain.OSMOSIS,
    # Known EVM chains without a dedicated listing pipeline
    "polygon": Chain.OTHER,
    "arbitrum": Chain.OTHER,
    "avalanche": Chain.OTHER,
    "optimism": Chain.OTHER,
}

# Symbols treated as the quote side of a pair
QUOTE_SYMBOLS = frozenset({"SOL", "WSOL", "USDC", "USDT", "WETH", "WBNB", "MOVE"})


def resolve_chain(raw: Optional[str]) -> Chain:
    """Map a provider chain identifier to a Chain.

    Matching is exact after trimming and lower-casing; anything not in the
    alias table raises UnsupportedChainError.
    """
    key = (raw or "").strip().lower()
    chain = _CHAIN_ALIASES.get(key)
    if chain is None:
        raise UnsupportedChainError(raw)
    return chain


def is_quote_symbol(symbol: Optional[str]) -> bool:
    return (symbol or "").strip().upper() in QUOTE_SYMBOLS


# ---------------------------------------------------------------------------
# Address validators
# ---------------------------------------------------------------------------


class AddressValidator:
    name = "permissive"

    def is_valid(self, address: Optional[str]) -> bool:
        if not isinstance(address, str) or not address:
            return False
        return not any(ch.isspace() for ch in address)

    def normalize(self, address: str) -> str:
        return address


class SolanaAddressValidator(AddressValidator):
    name = "solana"
    _pattern = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{32,44}$")

    def is_valid(self, address: Optional[str]) -> bool:
        if not isinstance(address, str):
            return False
        if address.lower().startswith("0x"):
            return False
        if any(ch in address for ch in "/.:"):
            return False
        if not self._pattern.match(address):
            return False
        try:
            return len(base58.b58decode(address)) == 32
        except ValueError:
            return False


class EvmAddressValidator(AddressValidator):
    name = "evm"
    _pattern = re.compile(r"^0x[0-9a-fA-F]{40}$")

    def is_valid(self, address: Optional[str]) -> bool:
        return isinstance(address, str) and bool(self._pattern.match(address))

    def normalize(self, address: str) -> str:
        # Checksummed and lowercase hex name the same account
        return address.lower()


_SOLANA = SolanaAddressValidator()
_EVM = EvmAddressValidator()
_PERMISSIVE = AddressValidator()

_VALIDATORS: Dict[Chain, AddressValidator] = {
    Chain.SOLANA: _SOLANA,
    Chain.ETHEREUM: _EVM,
    Chain.BSC: _EVM,
    Chain.BASE: _EVM,
}


def validator_for(chain: Chain) -> AddressValidator:
    return _VALIDATORS.get(chain, _PERMISSIVE)


def is_valid_address(chain: Chain, address: Optional[str]) -> bool:
    return validator_for(chain).is_valid(address)


def canonical_address(chain: Chain, address: str) -> str:
    return validator_for(chain).normalize(address)
