from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SwapRequest(ApiModel):
    from_network: str
    to_network: str
    from_token: str
    to_token: str
    amount: str
    user_address: str
    destination_address: Optional[str] = None

    @field_validator("amount", mode="before")
    @classmethod
    def _amount_as_text(cls, value):
        # JSON numbers are accepted but parsed from their text form
        return str(value) if isinstance(value, (int, float)) and not isinstance(value, bool) else value


class SwapResult(ApiModel):
    success: bool
    order_hash: Optional[str] = None
    hash_lock: Optional[str] = None
    secret: Optional[str] = None
    src_escrow: Optional[str] = None
    dst_escrow: Optional[str] = None
    src_tx_hash: Optional[str] = None
    dst_tx_hash: Optional[str] = None
    settlement_mode: Optional[str] = None
    atomic: Optional[bool] = None
    message: str = ""
    error_kind: Optional[str] = None
    error: Optional[str] = None


class OrderStatusView(ApiModel):
    order_hash: str
    status: str
    status_description: str
    hash_lock: str
    from_network: str
    to_network: str
    settlement_mode: Optional[str] = None
    atomic: bool
    partial_settlement: bool
    created_at: float
    completed_at: Optional[float] = None
    deposit_tx_hash: Optional[str] = None
    src_tx_hash: Optional[str] = None
    dst_tx_hash: Optional[str] = None
    src_escrow_address: Optional[str] = None
    dst_escrow_address: Optional[str] = None
    dst_payout_tx: Optional[str] = None
    src_claim_tx: Optional[str] = None
    payout_attempts: int = 0
    last_payout_error: Optional[str] = None
    error_kind: Optional[str] = None
    error_message: Optional[str] = None


class OrderSummary(ApiModel):
    status: str
    from_network: str
    to_network: str
    created_at: float
    completed_at: Optional[float] = None
    partial_settlement: bool = False


class NetworkInfo(ApiModel):
    name: str
    chain_id: int
    escrow: bool
    tokens: List[str]


class SupportedView(ApiModel):
    networks: Dict[str, NetworkInfo]
    pairs: List[Dict[str, Any]]
