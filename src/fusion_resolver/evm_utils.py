import logging
import threading

from eth_account.signers.local import LocalAccount
from web3 import Web3
from web3.contract.contract import ContractFunction
from web3.types import TxParams, TxReceipt

from .errors import RevertError

log = logging.getLogger("evm")

ERC20_ABI = [
    {
        "name": "transfer",
        "type": "function",
        "inputs": [{"name": "to", "type": "address"}, {"name": "amount", "type": "uint256"}],
        "outputs": [{"name": "", "type": "bool"}],
    },
    {
        "name": "transferFrom",
        "type": "function",
        "inputs": [
            {"name": "from", "type": "address"},
            {"name": "to", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        "outputs": [{"name": "", "type": "bool"}],
    },
    {
        "name": "approve",
        "type": "function",
        "inputs": [{"name": "spender", "type": "address"}, {"name": "amount", "type": "uint256"}],
        "outputs": [{"name": "", "type": "bool"}],
    },
    {
        "name": "balanceOf",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "owner", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "name": "allowance",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "owner", "type": "address"}, {"name": "spender", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
]

ESCROW_FACTORY_ABI = [
    {
        "name": "createEscrow",
        "type": "function",
        "stateMutability": "payable",
        "inputs": [
            {"name": "orderHash", "type": "bytes32"},
            {"name": "token", "type": "address"},
            {"name": "amount", "type": "uint256"},
            {"name": "hashLock", "type": "bytes32"},
            {"name": "timeLocks", "type": "uint256"},
            {"name": "depositor", "type": "address"},
            {"name": "beneficiary", "type": "address"},
        ],
        "outputs": [{"name": "", "type": "address"}],
    },
    {
        "name": "getEscrow",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "orderHash", "type": "bytes32"}],
        "outputs": [{"name": "", "type": "address"}],
    },
]

ESCROW_ABI = [
    {
        "name": "withdraw",
        "type": "function",
        "inputs": [{"name": "secret", "type": "bytes32"}],
        "outputs": [],
    },
    {"name": "cancel", "type": "function", "inputs": [], "outputs": []},
]

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def _send_tx(
    w3: Web3,
    acc: LocalAccount,
    fn: ContractFunction,
    chain_id: int,
    nonce_lock: threading.Lock,
    value: int = 0,
    gas: int = 2_500_000,
    timeout: float = 120,
) -> TxReceipt:
    """Simulate, sign, broadcast and wait for one contract call.

    The dry-run ``call`` surfaces revert reasons before any gas is spent;
    the nonce lock keeps concurrent sends from the same account apart.
    """
    fn.call({"from": acc.address, "value": value})
    with nonce_lock:
        base: TxParams = {}
        base['from'] = acc.address
        base['chainId'] = chain_id
        base['gas'] = gas
        base['gasPrice'] = w3.eth.gas_price
        base['nonce'] = w3.eth.get_transaction_count(acc.address, "pending")
        base['value'] = value
        tx = fn.build_transaction(base)
        signed = acc.sign_transaction(tx)
        tx_hash = w3.eth.send_raw_transaction(signed.raw_transaction)
    receipt = w3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)
    if receipt["status"] != 1:
        raise RevertError(
            f"Transaction {Web3.to_hex(tx_hash)} reverted in block {receipt['blockNumber']}"
        )
    log.info(f"✓ {Web3.to_hex(tx_hash)} confirmed in block {receipt['blockNumber']}")
    return receipt
