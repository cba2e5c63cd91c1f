"""
Signing through the authority, and verification of what it produced.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, List, Mapping, Optional, Union

from walletkit.config import Settings, settings as default_settings

from ..authority.base import WalletAuthority
from ..authority.chain_client import ChainClient, ChainClientPool
from ..errors import AuthorityError, AuthorityUnavailableError, classify_authority_error
from .digest import Message, eip712_types_with_domain, message_digest, typed_data_digest
from .models import SignatureKind, SignatureRequest, TypedData
from .verify import verify_universal_signature

if TYPE_CHECKING:
    from ..signer import Signer


logger = logging.getLogger(__name__)


class SigningProtocol:
    """
    Builds canonical digests, asks the authority to sign, and verifies.

    Usage:
        signing = SigningProtocol(authority, chain_clients=pool)
        signature = await signing.sign_message(signer, "hello")
        await signing.verify_message_signature(signer.address, "hello", signature, signer.chain_id)
    """

    def __init__(
        self,
        authority: WalletAuthority,
        *,
        chain_clients: Optional[ChainClientPool] = None,
        settings: Optional[Settings] = None,
    ):
        self._authority = authority
        self._chain_clients = chain_clients
        self._settings = settings or default_settings

    async def sign_message(
        self,
        signer: "Signer",
        message: Message,
        counterfactual: bool = False,
    ) -> bytes:
        """Sign an EIP-191 personal message (text, raw bytes or 0x-hex)."""
        digest = message_digest(message)
        request = SignatureRequest(
            kind=SignatureKind.MESSAGE,
            payload_digest=digest,
            chain_id=signer.chain_id,
            counterfactual=counterfactual,
        )
        return await self._sign(
            signer,
            request,
            lambda: self._authority.sign_message(digest, signer.chain_id, counterfactual),
        )

    async def sign_typed_data(
        self,
        signer: "Signer",
        domain: Dict[str, Any],
        types: Dict[str, List[Dict[str, str]]],
        message: Dict[str, Any],
        counterfactual: bool = False,
        primary_type: Optional[str] = None,
    ) -> bytes:
        """Sign an EIP-712 payload."""
        return await self.sign_typed(
            signer,
            TypedData(domain=domain, types=types, message=message, primary_type=primary_type),
            counterfactual,
        )

    async def sign_typed(
        self,
        signer: "Signer",
        typed_data: TypedData,
        counterfactual: bool = False,
    ) -> bytes:
        # Hashing up front rejects a bad schema before the user is prompted
        digest = typed_data_digest(typed_data)
        request = SignatureRequest(
            kind=SignatureKind.TYPED_DATA,
            payload_digest=digest,
            chain_id=signer.chain_id,
            counterfactual=counterfactual,
        )
        return await self._sign(
            signer,
            request,
            lambda: self._authority.sign_typed_data(
                typed_data.domain,
                eip712_types_with_domain(typed_data),
                typed_data.message,
                signer.chain_id,
                counterfactual,
            ),
        )

    async def _sign(
        self,
        signer: "Signer",
        request: SignatureRequest,
        call: Callable[[], Awaitable[bytes]],
    ) -> bytes:
        try:
            signature = await call()
        except AuthorityError as e:
            logger.warning("Authority failed to sign %s: %s", request.kind.value, e)
            raise classify_authority_error(e, "sign", chain_id=request.chain_id) from e

        if not signature:
            raise AuthorityUnavailableError(
                "Authority returned an empty signature",
                chain_id=request.chain_id,
            )

        logger.info(
            "Signed %s for %s on chain %d (counterfactual=%s)",
            request.kind.value,
            signer.address,
            request.chain_id,
            request.counterfactual,
        )
        return bytes(signature)

    async def verify_message_signature(
        self,
        address: str,
        message: Message,
        signature: Union[bytes, str],
        chain_id: int,
    ) -> bool:
        """True iff signature is a valid wallet signature of message. Never raises."""
        try:
            digest = message_digest(message)
        except Exception as e:
            logger.debug("Unhashable message: %s", e)
            return False
        return await verify_universal_signature(
            address, digest, signature, chain_id, self._chain_client(chain_id)
        )

    async def verify_typed_data_signature(
        self,
        address: str,
        typed_data: Union[TypedData, Mapping[str, Any]],
        signature: Union[bytes, str],
        chain_id: int,
    ) -> bool:
        """True iff signature is a valid wallet signature of typed_data. Never raises."""
        try:
            digest = typed_data_digest(typed_data)
        except Exception as e:
            logger.debug("Unhashable typed data: %s", e)
            return False
        return await verify_universal_signature(
            address, digest, signature, chain_id, self._chain_client(chain_id)
        )

    def _chain_client(self, chain_id: int) -> Optional[ChainClient]:
        if self._chain_clients is None or not self._settings.enable_onchain_verification:
            return None
        return self._chain_clients.get(chain_id)
