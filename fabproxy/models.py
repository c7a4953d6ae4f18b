"""
Data models for the fabproxy JSON-RPC surface.
"""
from typing import Optional
from pydantic import BaseModel, Field


class CallParams(BaseModel):
    """Ethereum transaction/call object; only data is mandatory"""
    from_address: Optional[str] = Field(None, alias="from")
    to: Optional[str] = None
    gas: Optional[str] = None
    gas_price: Optional[str] = Field(None, alias="gasPrice")
    value: Optional[str] = None
    data: str
    nonce: Optional[str] = None

    class Config:
        populate_by_name = True


class TxReceipt(BaseModel):
    """Ethereum-shaped receipt rebuilt from ledger records"""
    transaction_hash: str = Field(..., alias="transactionHash")
    block_hash: str = Field(..., alias="blockHash")
    block_number: str = Field(..., alias="blockNumber")
    contract_address: Optional[str] = Field(None, alias="contractAddress")
    # The ledger has no gas accounting at this layer
    gas_used: int = Field(0, alias="gasUsed")
    cumulative_gas_used: int = Field(0, alias="cumulativeGasUsed")

    class Config:
        populate_by_name = True
        frozen = True
