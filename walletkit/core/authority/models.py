"""
Wire models exchanged with the wallet authority.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class UiSettings(BaseModel):
    """Wallet UI preferences forwarded on connect / open."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    theme: Optional[str] = None
    banner_url: Optional[str] = Field(default=None, alias="bannerUrl")
    included_payment_providers: Optional[List[str]] = Field(
        default=None, alias="includedPaymentProviders"
    )
    default_funding_currency: Optional[str] = Field(default=None, alias="defaultFundingCurrency")
    lock_funding_currency_to_default: Optional[bool] = Field(
        default=None, alias="lockFundingCurrencyToDefault"
    )


class ConnectOptions(BaseModel):
    """Request to connect to the wallet."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    app: str
    authorize: bool = False
    keep_wallet_opened: bool = Field(default=False, alias="keepWalletOpened")
    settings: Optional[UiSettings] = None

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class OpenWalletOptions(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    settings: Optional[UiSettings] = None


class OpenWalletIntent(BaseModel):
    """What the wallet should do when opened (e.g. open with custom settings)."""
    model_config = ConfigDict(populate_by_name=True)

    type: str = "openWithOptions"
    options: Optional[OpenWalletOptions] = None

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class ConnectProof(BaseModel):
    """Auth proof returned when connecting with authorize=True."""
    model_config = ConfigDict(populate_by_name=True)

    proof_string: str = Field(alias="proofString")
    typed_data: Optional[Dict[str, Any]] = Field(default=None, alias="typedData")


class ConnectDetails(BaseModel):
    """Authority response to a connect request."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    connected: bool
    address: Optional[str] = None
    chain_id: Optional[int] = Field(default=None, alias="chainId")
    networks: List[Dict[str, Any]] = Field(default_factory=list)
    proof: Optional[ConnectProof] = None
    error: Optional[str] = None

    @field_validator("chain_id", mode="before")
    @classmethod
    def _parse_chain_id(cls, value: Any) -> Any:
        if isinstance(value, str):
            return int(value, 16) if value.startswith("0x") else int(value)
        return value


class AuthorityEventType(str, Enum):
    """Event names emitted by the authority's event stream."""
    MESSAGE = "message"
    ACCOUNTS_CHANGED = "accountsChanged"
    CHAIN_CHANGED = "chainChanged"
    CONNECT = "connect"
    DISCONNECT = "disconnect"
    OPEN = "open"
    CLOSE = "close"


@dataclass(frozen=True)
class AuthorityEvent:
    """One notification from the authority."""
    type: AuthorityEventType
    payload: Any = None
    received_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
