"""Registry of networks advertised by the wallet authority."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..errors import (
    InvalidNetworkTableError,
    NoDefaultNetworkError,
    UnknownChainError,
)
from .models import Network


class ChainRegistry:
    """Table of supported networks, populated from the authority.

    The table is read-only between refreshes. A refresh builds a complete new
    table and swaps it in with a single assignment, so readers never see a
    half-updated registry; a failed refresh keeps the previous table.

    Usage:
        registry = ChainRegistry(authority)
        await registry.refresh()

        registry.default_network().name   # "polygon"
        registry.by_chain_id(1)           # Network(chain_id=1, name="mainnet", ...)
    """

    def __init__(
        self,
        source: Optional[Any] = None,
        *,
        default_network: Optional[str] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._source = source
        self._default_name = default_network.lower() if default_network else None
        self._logger = logger or logging.getLogger(__name__)

        # (ordered networks, by chain id, by name) swapped as one tuple
        self._table: Tuple[Tuple[Network, ...], Dict[int, Network], Dict[str, Network]] = ((), {}, {})
        self._last_refresh: Optional[datetime] = None
        self._refresh_task: Optional["asyncio.Task[List[Network]]"] = None

    @classmethod
    def from_networks(
        cls,
        networks: Iterable[Network],
        *,
        default_network: Optional[str] = None,
    ) -> "ChainRegistry":
        """Build a static registry from a known network list."""
        registry = cls(default_network=default_network)
        registry.replace(networks)
        return registry

    @property
    def is_loaded(self) -> bool:
        return bool(self._table[0])

    @property
    def has_source(self) -> bool:
        return self._source is not None

    @property
    def last_refresh(self) -> Optional[datetime]:
        return self._last_refresh

    async def refresh(self) -> List[Network]:
        """Re-fetch the network table from the authority and swap it in.

        Callers arriving while a refresh is in flight share its result.
        """
        if self._source is None:
            raise InvalidNetworkTableError("Registry has no network source to refresh from")

        task = self._refresh_task
        if task is None or task.done():
            task = asyncio.create_task(self._fetch())
            self._refresh_task = task
        return await asyncio.shield(task)

    async def _fetch(self) -> List[Network]:
        raw = await self._source.get_networks()
        networks = [
            item if isinstance(item, Network) else Network.from_authority(item)
            for item in raw or []
        ]
        self.replace(networks)
        self._logger.info(
            "Chain registry refreshed: %d networks, default %s",
            len(networks),
            self._table[0][0].name if self._table[0] else None,
        )
        return self.list_networks()

    def replace(self, networks: Iterable[Network]) -> None:
        """Validate a complete network list and atomically install it."""
        self._table = self._build_table(list(networks))
        self._last_refresh = datetime.now(timezone.utc)

    def _build_table(
        self,
        networks: List[Network],
    ) -> Tuple[Tuple[Network, ...], Dict[int, Network], Dict[str, Network]]:
        by_id: Dict[int, Network] = {}
        for network in networks:
            if network.chain_id in by_id:
                raise InvalidNetworkTableError(
                    f"Duplicate chain id {network.chain_id} in network table",
                    details={"chain_id": network.chain_id},
                )
            by_id[network.chain_id] = network

        defaults = [n for n in networks if n.is_default]
        if len(defaults) > 1:
            raise InvalidNetworkTableError(
                "More than one default network: "
                + ", ".join(n.name for n in defaults),
            )

        if not defaults and self._default_name:
            for idx, network in enumerate(networks):
                if network.name == self._default_name:
                    promoted = Network(
                        chain_id=network.chain_id,
                        name=network.name,
                        is_default=True,
                        rpc_url=network.rpc_url,
                        title=network.title,
                        is_testnet=network.is_testnet,
                        native_symbol=network.native_symbol,
                    )
                    networks = networks[:idx] + [promoted] + networks[idx + 1:]
                    by_id[promoted.chain_id] = promoted
                    break

        # Default first, remaining in authority order
        ordered = tuple(
            [n for n in networks if n.is_default] + [n for n in networks if not n.is_default]
        )
        by_name = {n.name: n for n in ordered}
        return ordered, by_id, by_name

    def list_networks(self) -> List[Network]:
        """All networks, default first, otherwise in authority order."""
        return list(self._table[0])

    def default_network(self) -> Network:
        ordered = self._table[0]
        if not ordered or not ordered[0].is_default:
            raise NoDefaultNetworkError("No network is flagged as default")
        return ordered[0]

    def by_chain_id(self, chain_id: int) -> Optional[Network]:
        return self._table[1].get(chain_id)

    def by_name(self, name: str) -> Optional[Network]:
        return self._table[2].get(name.strip().lower())

    def require(self, chain_id: int) -> Network:
        """Return the network for chain_id or raise UnknownChainError."""
        network = self.by_chain_id(chain_id)
        if network is None:
            raise UnknownChainError(chain_id)
        return network

    def __contains__(self, chain_id: object) -> bool:
        return chain_id in self._table[1]

    def __len__(self) -> int:
        return len(self._table[0])
