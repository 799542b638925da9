"""Order construction and hashing.

An order hash is computed by exactly one of two schemes, chosen up front from
the shape of the order's addresses:

* ``typed``: every address field is a 20-byte EVM hex address. The hash is the
  1inch limit-order struct hash, keccak256 over the ABI encoding of the
  ``Order`` typehash followed by the eight order fields as uint256 words.
* ``delimited``: at least one address uses another encoding (a TRON base58
  address, for instance). The hash is keccak256 over the UTF-8 string of the
  same fields, in the same order as the struct, joined with ``-``.

The scheme never changes because an encoder raised; it is a pure function of
the order.
"""

import os
import re
from decimal import Decimal, DecimalException, Inexact, InvalidOperation, localcontext

from attr import dataclass
from eth_abi.abi import encode as abi_encode
from web3 import Web3

from .errors import InvalidAmountError

EVM_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")
UINT256_LIMIT = 1 << 256

ORDER_TYPEHASH = Web3.keccak(
    text="Order(uint256 salt,Address maker,Address receiver,Address makerAsset,"
    "Address takerAsset,uint256 makingAmount,uint256 takingAmount,"
    "MakerTraits makerTraits)"
)

TYPED = "typed"
DELIMITED = "delimited"


@dataclass(frozen=True)
class Order:
    maker: str
    maker_asset: str
    taker_asset: str
    making_amount: int
    taking_amount: int
    receiver: str
    salt: int
    maker_traits: int = 0


def generate_secret() -> bytes:
    return os.urandom(32)


def compute_hash_lock(secret: bytes) -> bytes:
    return bytes(Web3.keccak(secret))


def generate_salt() -> int:
    return int.from_bytes(os.urandom(32), "big")


def to_hex(data: bytes) -> str:
    return Web3.to_hex(data)


def from_hex(value: str) -> bytes:
    return bytes(Web3.to_bytes(hexstr=value))


def is_evm_address(address: str) -> bool:
    return bool(EVM_ADDRESS_RE.match(address or ""))


def to_base_units(amount: str, decimals: int) -> int:
    """Scale a decimal string such as ``"100.5"`` to integer token units."""
    try:
        value = Decimal(str(amount).strip())
    except InvalidOperation as err:
        raise InvalidAmountError(f"Malformed amount {amount!r}") from err
    if not value.is_finite() or value <= 0:
        raise InvalidAmountError(f"Amount must be a positive number, got {amount!r}")
    with localcontext() as ctx:
        # a uint256 has at most 78 digits, so any amount in range scales exactly
        ctx.prec = 100
        ctx.traps[Inexact] = True
        try:
            scaled = value.scaleb(decimals)
        except DecimalException as err:
            raise InvalidAmountError(f"Amount {amount!r} is out of range") from err
    if scaled != scaled.to_integral_value():
        raise InvalidAmountError(f"Amount {amount} has more than {decimals} decimal places")
    if scaled >= UINT256_LIMIT:
        raise InvalidAmountError(f"Amount {amount} does not fit in a uint256")
    return int(scaled)


def hash_scheme(order: Order) -> str:
    addresses = (order.maker, order.receiver, order.maker_asset, order.taker_asset)
    return TYPED if all(is_evm_address(a) for a in addresses) else DELIMITED


def _typed_hash(order: Order) -> bytes:
    struct_enc = abi_encode(
        ["bytes32"] + ["uint256"] * 8,
        [
            ORDER_TYPEHASH,
            order.salt,
            int(order.maker, 16),
            int(order.receiver, 16),
            int(order.maker_asset, 16),
            int(order.taker_asset, 16),
            order.making_amount,
            order.taking_amount,
            order.maker_traits,
        ],
    )
    return bytes(Web3.keccak(struct_enc))


def delimited_encoding(order: Order) -> str:
    return "-".join(
        str(v)
        for v in (
            f"{order.salt:#066x}",
            order.maker,
            order.receiver,
            order.maker_asset,
            order.taker_asset,
            order.making_amount,
            order.taking_amount,
            order.maker_traits,
        )
    )


def order_hash(order: Order) -> bytes:
    if hash_scheme(order) == TYPED:
        return _typed_hash(order)
    return bytes(Web3.keccak(text=delimited_encoding(order)))
