"""Network models."""

from dataclasses import dataclass
from typing import Any, Dict


@dataclass(frozen=True)
class Network:
    """A network supported by the wallet."""
    chain_id: int
    name: str
    is_default: bool = False
    rpc_url: str = ""
    title: str = ""
    is_testnet: bool = False
    native_symbol: str = "ETH"

    def __post_init__(self):
        if not isinstance(self.chain_id, int) or isinstance(self.chain_id, bool) or self.chain_id <= 0:
            raise ValueError(f"chain_id must be a positive integer, got {self.chain_id!r}")
        if not self.name:
            raise ValueError("Network name is required")

    @classmethod
    def from_authority(cls, data: Dict[str, Any]) -> "Network":
        """Create a Network from the authority's network config payload."""
        chain_id = data["chainId"]
        if isinstance(chain_id, str):
            chain_id = int(chain_id, 16) if chain_id.startswith("0x") else int(chain_id)
        native = data.get("nativeToken") or {}
        return cls(
            chain_id=chain_id,
            name=str(data["name"]).lower(),
            is_default=bool(data.get("isDefaultChain", data.get("isDefault", False))),
            rpc_url=data.get("rpcUrl", "") or "",
            title=data.get("title", "") or "",
            is_testnet=bool(data.get("testnet", data.get("isTestnet", False))),
            native_symbol=native.get("symbol", "ETH"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chainId": self.chain_id,
            "name": self.name,
            "isDefaultChain": self.is_default,
            "rpcUrl": self.rpc_url,
            "title": self.title,
            "testnet": self.is_testnet,
            "nativeToken": {"symbol": self.native_symbol},
        }
