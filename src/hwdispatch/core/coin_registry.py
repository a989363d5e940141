"""
Static coin metadata keyed by lower-case symbol.

The registry is seeded once at import time and never mutated afterwards, so
a single instance is shared across every dispatch. Lookups are
case-insensitive and accept aliases (``bitcoin`` resolves to ``btc``).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable

from hwdispatch.core.derivation_path import DerivationPath, parse_path, unharden
from hwdispatch.core.exceptions import CoinRegistryError

FALLBACK_SYMBOL = "btc"


@dataclass(frozen=True)
class CoinDescriptor:
    """Metadata for one coin supported by the device."""

    symbol: str
    display_name: str
    slip44_type: int
    supports_segwit: bool
    decimals: int
    default_path_template: str
    account_path_template: str
    address_pattern: str = ""
    family: str = "bitcoin"
    aliases: tuple[str, ...] = ()
    bech32_hrp: str | None = None
    p2pkh_version: bytes | None = None
    p2sh_version: bytes | None = None
    testnet: bool = False
    explorer_url: str = ""

    def default_path(self, account: int = 0) -> DerivationPath:
        return parse_path(self.default_path_template.format(account=account))

    def account_path(self, account: int = 0) -> DerivationPath:
        return parse_path(self.account_path_template.format(account=account))

    def matches_address(self, address: str) -> bool:
        if not self.address_pattern or not address:
            return False
        return re.fullmatch(self.address_pattern, address) is not None


@dataclass(frozen=True)
class EvmChain:
    """An EVM network reachable with Ethereum signing requests."""

    name: str
    shortcut: str
    chain_id: int
    slip44: int = 60
    decimals: int = 18
    rpc_url: str = ""
    explorer_url: str = ""
    is_l2: bool = False
    native_token: str = "ETH"


def _btc_like(
    symbol: str,
    name: str,
    slip44: int,
    *,
    segwit: bool,
    pattern: str,
    p2pkh: bytes,
    p2sh: bytes,
    hrp: str | None = None,
    aliases: tuple[str, ...] = (),
    testnet: bool = False,
    explorer: str = "",
) -> CoinDescriptor:
    purpose = 84 if segwit else 44
    return CoinDescriptor(
        symbol=symbol,
        display_name=name,
        slip44_type=slip44,
        supports_segwit=segwit,
        decimals=8,
        default_path_template=f"m/{purpose}'/{slip44}'/{{account}}'/0/0",
        account_path_template=f"m/{purpose}'/{slip44}'/{{account}}'",
        address_pattern=pattern,
        family="bitcoin",
        aliases=aliases,
        bech32_hrp=hrp,
        p2pkh_version=p2pkh,
        p2sh_version=p2sh,
        testnet=testnet,
        explorer_url=explorer,
    )


_SCRIPT_TYPES_BY_PURPOSE = {84: "p2wpkh", 49: "p2sh-p2wpkh", 86: "p2tr"}


def script_type_for_path(path: DerivationPath) -> str:
    """Bitcoin script type implied by the purpose component of a path."""
    if not path.components:
        return "p2pkh"
    return _SCRIPT_TYPES_BY_PURPOSE.get(unharden(path.components[0]), "p2pkh")


_BASE58 = "[1-9A-HJ-NP-Za-km-z]"


def default_coins() -> tuple[CoinDescriptor, ...]:
    """Coins the device firmware supports for address and signing requests."""
    return (
        _btc_like(
            "btc", "Bitcoin", 0, segwit=True, hrp="bc", p2pkh=b"\x00", p2sh=b"\x05",
            pattern=r"(bc1[a-z0-9]{39,59}|[13]" + _BASE58 + "{25,34})",
            aliases=("bitcoin",), explorer="https://mempool.space",
        ),
        _btc_like(
            "test", "Bitcoin Testnet", 1, segwit=True, hrp="tb", p2pkh=b"\x6f", p2sh=b"\xc4",
            pattern=r"(tb1[a-z0-9]{39,59}|[mn2]" + _BASE58 + "{25,34})",
            aliases=("testnet", "tbtc"), testnet=True, explorer="https://mempool.space/testnet",
        ),
        _btc_like(
            "ltc", "Litecoin", 2, segwit=True, hrp="ltc", p2pkh=b"\x30", p2sh=b"\x32",
            pattern=r"(ltc1[a-z0-9]{39,59}|[LM3]" + _BASE58 + "{26,33})",
            aliases=("litecoin",), explorer="https://blockchair.com/litecoin",
        ),
        _btc_like(
            "doge", "Dogecoin", 3, segwit=False, p2pkh=b"\x1e", p2sh=b"\x16",
            pattern=r"D[5-9A-HJ-NP-U]" + _BASE58 + "{32}",
            aliases=("dogecoin",), explorer="https://blockchair.com/dogecoin",
        ),
        _btc_like(
            "dash", "Dash", 5, segwit=False, p2pkh=b"\x4c", p2sh=b"\x10",
            pattern=r"[X7]" + _BASE58 + "{33}",
            explorer="https://blockchair.com/dash",
        ),
        _btc_like(
            "bch", "Bitcoin Cash", 145, segwit=False, p2pkh=b"\x00", p2sh=b"\x05",
            pattern=r"((bitcoincash:)?[qp][a-z0-9]{41}|[13]" + _BASE58 + "{25,34})",
            aliases=("bitcoincash",), explorer="https://blockchair.com/bitcoin-cash",
        ),
        _btc_like(
            "zec", "Zcash", 133, segwit=False, p2pkh=b"\x1c\xb8", p2sh=b"\x1c\xbd",
            pattern=r"t[13]" + _BASE58 + "{33}",
            aliases=("zcash",), explorer="https://blockchair.com/zcash",
        ),
        _btc_like(
            "dgb", "DigiByte", 20, segwit=True, hrp="dgb", p2pkh=b"\x1e", p2sh=b"\x3f",
            pattern=r"(dgb1[a-z0-9]{39,59}|[DS]" + _BASE58 + "{33})",
            aliases=("digibyte",),
        ),
        _btc_like(
            "vtc", "Vertcoin", 28, segwit=True, hrp="vtc", p2pkh=b"\x47", p2sh=b"\x05",
            pattern=r"(vtc1[a-z0-9]{39,59}|[V3]" + _BASE58 + "{33})",
            aliases=("vertcoin",),
        ),
        _btc_like(
            "mona", "Monacoin", 22, segwit=True, hrp="mona", p2pkh=b"\x32", p2sh=b"\x37",
            pattern=r"(mona1[a-z0-9]{39,59}|[MP]" + _BASE58 + "{33})",
            aliases=("monacoin",),
        ),
        _btc_like(
            "grs", "Groestlcoin", 17, segwit=True, hrp="grs", p2pkh=b"\x24", p2sh=b"\x05",
            pattern=r"(grs1[a-z0-9]{39,59}|[F3]" + _BASE58 + "{33})",
            aliases=("groestlcoin",),
        ),
        CoinDescriptor(
            symbol="eth", display_name="Ethereum", slip44_type=60, supports_segwit=False,
            decimals=18,
            default_path_template="m/44'/60'/{account}'/0/0",
            account_path_template="m/44'/60'/{account}'",
            address_pattern=r"0x[a-fA-F0-9]{40}", family="ethereum",
            aliases=("ethereum",), explorer_url="https://etherscan.io",
        ),
        CoinDescriptor(
            symbol="etc", display_name="Ethereum Classic", slip44_type=61, supports_segwit=False,
            decimals=18,
            default_path_template="m/44'/61'/{account}'/0/0",
            account_path_template="m/44'/61'/{account}'",
            address_pattern=r"0x[a-fA-F0-9]{40}", family="ethereum",
            aliases=("ethereumclassic",), explorer_url="https://blockscout.com/etc/mainnet",
        ),
        CoinDescriptor(
            symbol="ada", display_name="Cardano", slip44_type=1815, supports_segwit=False,
            decimals=6,
            default_path_template="m/1852'/1815'/{account}'/0/0",
            account_path_template="m/1852'/1815'/{account}'",
            address_pattern=r"(addr1|addr_test1|stake1|stake_test1)[0-9a-z]{20,}",
            family="cardano", aliases=("cardano",), bech32_hrp="addr",
            explorer_url="https://cardanoscan.io",
        ),
        CoinDescriptor(
            symbol="sol", display_name="Solana", slip44_type=501, supports_segwit=False,
            decimals=9,
            default_path_template="m/44'/501'/{account}'/0'",
            account_path_template="m/44'/501'/{account}'",
            address_pattern=_BASE58 + "{32,44}", family="solana",
            aliases=("solana",), explorer_url="https://explorer.solana.com",
        ),
        CoinDescriptor(
            symbol="xrp", display_name="Ripple", slip44_type=144, supports_segwit=False,
            decimals=6,
            default_path_template="m/44'/144'/{account}'/0/0",
            account_path_template="m/44'/144'/{account}'",
            address_pattern=r"r[1-9A-HJ-NP-Za-km-z]{24,34}", family="ripple",
            aliases=("ripple",), explorer_url="https://xrpscan.com",
        ),
        CoinDescriptor(
            symbol="xlm", display_name="Stellar", slip44_type=148, supports_segwit=False,
            decimals=7,
            default_path_template="m/44'/148'/{account}'",
            account_path_template="m/44'/148'/{account}'",
            address_pattern=r"G[A-Z2-7]{55}", family="stellar",
            aliases=("stellar",), explorer_url="https://stellar.expert",
        ),
        CoinDescriptor(
            symbol="xtz", display_name="Tezos", slip44_type=1729, supports_segwit=False,
            decimals=6,
            default_path_template="m/44'/1729'/{account}'/0'",
            account_path_template="m/44'/1729'/{account}'",
            address_pattern=r"tz[1-3]" + _BASE58 + "{33}", family="tezos",
            aliases=("tezos",), explorer_url="https://tzkt.io",
        ),
        CoinDescriptor(
            symbol="eos", display_name="EOS", slip44_type=194, supports_segwit=False,
            decimals=4,
            default_path_template="m/44'/194'/{account}'/0/0",
            account_path_template="m/44'/194'/{account}'",
            address_pattern=r"[a-z1-5.]{1,12}", family="eos",
            explorer_url="https://bloks.io",
        ),
        CoinDescriptor(
            symbol="bnb", display_name="Binance Chain", slip44_type=714, supports_segwit=False,
            decimals=8,
            default_path_template="m/44'/714'/{account}'/0/0",
            account_path_template="m/44'/714'/{account}'",
            address_pattern=r"bnb1[0-9a-z]{38}", family="binance",
            aliases=("binance", "binancechain"), bech32_hrp="bnb",
            explorer_url="https://explorer.bnbchain.org",
        ),
    )


def default_evm_chains() -> tuple[EvmChain, ...]:
    return (
        EvmChain("Ethereum", "ETH", 1, rpc_url="https://eth.llamarpc.com",
                 explorer_url="https://etherscan.io"),
        EvmChain("Sepolia Testnet", "tETH", 11155111, slip44=1,
                 rpc_url="https://rpc.sepolia.org", explorer_url="https://sepolia.etherscan.io"),
        EvmChain("Polygon", "MATIC", 137, rpc_url="https://polygon-rpc.com",
                 explorer_url="https://polygonscan.com", native_token="MATIC"),
        EvmChain("BNB Smart Chain", "BNB", 56, rpc_url="https://bsc-dataseed.binance.org",
                 explorer_url="https://bscscan.com", native_token="BNB"),
        EvmChain("Avalanche C-Chain", "AVAX", 43114,
                 rpc_url="https://api.avax.network/ext/bc/C/rpc",
                 explorer_url="https://snowtrace.io", native_token="AVAX"),
        EvmChain("Arbitrum One", "ETH", 42161, rpc_url="https://arb1.arbitrum.io/rpc",
                 explorer_url="https://arbiscan.io", is_l2=True),
        EvmChain("Optimism", "ETH", 10, rpc_url="https://mainnet.optimism.io",
                 explorer_url="https://optimistic.etherscan.io", is_l2=True),
        EvmChain("Base", "ETH", 8453, rpc_url="https://mainnet.base.org",
                 explorer_url="https://basescan.org", is_l2=True),
    )


class CoinRegistry:
    """
    Read-only coin table.

    Enforces uniqueness of symbols and aliases at construction time. After
    construction nothing mutates the internal maps, so concurrent reads are
    safe.
    """

    def __init__(
        self,
        entries: Iterable[CoinDescriptor] | None = None,
        evm_chains: Iterable[EvmChain] | None = None,
    ):
        base_entries = list(entries) if entries is not None else list(default_coins())
        if not base_entries:
            raise CoinRegistryError("Coin registry cannot be empty")

        self._coins: dict[str, CoinDescriptor] = {}
        self._keys: dict[str, CoinDescriptor] = {}
        for entry in base_entries:
            symbol_key = entry.symbol.lower()
            if symbol_key in self._coins:
                raise CoinRegistryError(f"Duplicate coin symbol '{entry.symbol}'")
            self._coins[symbol_key] = entry
            for key in (symbol_key, *(alias.lower() for alias in entry.aliases)):
                if key in self._keys:
                    other = self._keys[key].symbol
                    raise CoinRegistryError(f"Coin key '{key}' already registered to '{other}'")
                self._keys[key] = entry

        chains = list(evm_chains) if evm_chains is not None else list(default_evm_chains())
        self._chains: dict[int, EvmChain] = {}
        for chain in chains:
            if chain.chain_id in self._chains:
                raise CoinRegistryError(f"Duplicate EVM chain id {chain.chain_id}")
            self._chains[chain.chain_id] = chain

    def lookup(self, symbol: str | None) -> CoinDescriptor | None:
        """Return the descriptor for a symbol or alias, ignoring case."""
        if not symbol:
            return None
        return self._keys.get(symbol.strip().lower())

    def require(self, symbol: str | None) -> CoinDescriptor:
        descriptor = self.lookup(symbol)
        if descriptor is None:
            raise CoinRegistryError(f"Unsupported coin: {symbol}")
        return descriptor

    def default_path(self, symbol: str | None, account: int = 0) -> DerivationPath:
        """Default address path for a coin, falling back to Bitcoin."""
        descriptor = self.lookup(symbol) or self._coins[FALLBACK_SYMBOL]
        return descriptor.default_path(account)

    def account_path(self, symbol: str | None, account: int = 0) -> DerivationPath:
        descriptor = self.lookup(symbol) or self._coins[FALLBACK_SYMBOL]
        return descriptor.account_path(account)

    def slip44_type(self, symbol: str | None) -> int:
        descriptor = self.lookup(symbol)
        return descriptor.slip44_type if descriptor else 0

    def evm_chain(self, chain_id: int) -> EvmChain | None:
        return self._chains.get(chain_id)

    def list_coins(self) -> list[CoinDescriptor]:
        return list(self._coins.values())

    def list_evm_chains(self) -> list[EvmChain]:
        return list(self._chains.values())


DEFAULT_REGISTRY = CoinRegistry()


__all__ = [
    "CoinDescriptor",
    "EvmChain",
    "CoinRegistry",
    "DEFAULT_REGISTRY",
    "default_coins",
    "default_evm_chains",
    "script_type_for_path",
]
