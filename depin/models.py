"""Pydantic request models for the REST API."""

from typing import Optional, Union

from pydantic import BaseModel, field_validator

from depin.host import to_address
from depin.rights import NodeType


def parse_node_type(value: Union[int, str]) -> NodeType:
    """Accept a node type by wire value (0/1/2) or by name (``storage``)."""
    if isinstance(value, str) and not value.isdigit():
        try:
            return NodeType[value.upper()]
        except KeyError:
            raise ValueError(f"Unknown node type: {value}")
    return NodeType(int(value))


class _AddressModel(BaseModel):
    @field_validator("address", "to", "spender", "approved", "operator", "from_address",
                     check_fields=False)
    @classmethod
    def _check_address(cls, v):
        if v is None:
            return v
        return to_address(v)


class WalletVerifyRequest(BaseModel):
    address: str
    signature: str
    nonce: str


class RegisterNodeRequest(BaseModel):
    metadata: str = ""


class UptimeRequest(BaseModel):
    minutes_up: int


class StakeRequest(BaseModel):
    value: int


class MintRightsRequest(BaseModel):
    node_type: NodeType
    token_stake: int
    metadata: str = ""
    value: int = 0

    @field_validator("node_type", mode="before")
    @classmethod
    def _node_type(cls, v):
        return parse_node_type(v)


class UpgradeRequest(BaseModel):
    additional_token_stake: int = 0
    value: int = 0


class PerformanceRequest(BaseModel):
    uptime_seconds: int = 0
    score: int


class BridgeRequest(BaseModel):
    destination_chain: str


class TransferRightsRequest(_AddressModel):
    to: str
    from_address: Optional[str] = None


class ApproveRightsRequest(_AddressModel):
    approved: str


class OperatorRequest(_AddressModel):
    operator: str
    approved: bool = True


class NodeTypeConfigRequest(BaseModel):
    min_native_stake: int
    min_token_stake: int
    base_reward_rate_per_second: int
    is_active: bool = True
    max_capacity: Optional[int] = None


class TokenTransferRequest(_AddressModel):
    to: str
    amount: int


class TokenApproveRequest(_AddressModel):
    spender: str
    amount: int


class AddressRequest(_AddressModel):
    address: str


class TimeTravelRequest(BaseModel):
    seconds: int
