"""
Contract Handle - binds an ABI, an address and a transport.

``deploy`` and ``send`` check their preconditions and capture the target
address synchronously, then return a coroutine. Binding errors therefore
surface before any network I/O, and a later ``use`` never redirects a
submission that was already issued.
"""

from __future__ import annotations

import logging
from typing import Any, Coroutine, Optional, Sequence, Union

from ..errors import ContractNotBoundError, NoSignerAvailableError
from ..wire.abi import ContractInterface, artifact_bytecode
from ..wire.rpc import from_hex_quantity, to_hex_quantity
from .dispatch import (
    DEPLOY_GAS_LIMIT,
    SEND_GAS_LIMIT,
    TransactionDispatcher,
    TransactionRequest,
)
from .events import ProgressCallback
from .gas import GasPriceEstimator

logger = logging.getLogger(__name__)

ContractJSON = Union[dict, list]


def signer_address(account: Any) -> str:
    """Address of a signer object (``get_address()`` or ``.address``)."""
    get_address = getattr(account, "get_address", None)
    if callable(get_address):
        return get_address()
    return account.address


def _normalise_json(contract_json: ContractJSON) -> dict:
    if isinstance(contract_json, list):
        return {"abi": contract_json}
    if "abi" not in contract_json:
        raise ValueError("No ABI Interface provided")
    return contract_json


def _normalise_value(value: Union[int, str, None]) -> str:
    if value is None or value == "":
        return "0x0"
    return to_hex_quantity(value)


class ContractHandle:
    """
    Reusable call surface for one contract.

    Args:
        transport: Usually a ProviderRouter
        contract_json: Artifact dict (``abi`` and optional ``bytecode``) or
                       a bare ABI list
        address: Deployed address, if known
        estimator: Gas price source (default: GasPriceEstimator(transport))
        dispatcher: Submission driver (default: TransactionDispatcher(transport))
    """

    def __init__(
        self,
        transport: Any,
        contract_json: ContractJSON,
        address: Optional[str] = None,
        estimator: Optional[GasPriceEstimator] = None,
        dispatcher: Optional[TransactionDispatcher] = None,
    ) -> None:
        if transport is None:
            raise ValueError("Please provide a valid transport")
        self.transport = transport
        self.estimator = estimator or GasPriceEstimator(transport)
        self.dispatcher = dispatcher or TransactionDispatcher(transport)
        self.address: Optional[str] = None
        self.use(contract_json, address)

    # ------------------------------------------------------------------
    # Binding
    # ------------------------------------------------------------------

    def use(self, contract_json: ContractJSON, address: Optional[str] = None) -> None:
        """Rebind to ``contract_json``; keep the current address unless one is given."""
        self.json = _normalise_json(contract_json)
        self.abi = self.json["abi"]
        if address:
            self.address = address
        self.contract = ContractInterface(self.abi, self.address)

    def _require_address(self) -> str:
        if not self.address:
            raise ContractNotBoundError(
                "Contract is not deployed, first deploy it and provide a contract address"
            )
        return self.address

    def _has_wallet(self) -> bool:
        return bool(getattr(self.transport, "has_wallet", True))

    # ------------------------------------------------------------------
    # Deploy
    # ------------------------------------------------------------------

    def deploy(
        self,
        account: Any = None,
        abi: Optional[Sequence[dict]] = None,
        bytecode: Optional[str] = None,
        args: Sequence[Any] = (),
        progress: Optional[ProgressCallback] = None,
    ) -> Coroutine[Any, Any, dict]:
        """
        Deploy a new instance and bind the handle to its address.

        With ``account`` the creation transaction is signed locally;
        otherwise the wallet behind the write transport deploys it.

        Args:
            account: Signer (optional)
            abi: ABI for constructor encoding (default: the bound ABI)
            bytecode: Deployment bytecode (default: from the bound JSON)
            args: Constructor arguments
            progress: Receives confirmation counts

        Returns:
            Coroutine resolving to the deployment receipt

        Raises:
            NoSignerAvailableError: No account and no wallet transport
            ValueError: Missing bytecode or bad constructor arguments
        """
        if account is None and not self._has_wallet():
            raise NoSignerAvailableError(
                "Deploy needs an account or a wallet transport"
            )

        interface = ContractInterface(abi if abi is not None else self.abi)
        data = interface.deploy_data(bytecode or artifact_bytecode(self.json), args)
        return self._deploy(account, interface, data, progress)

    async def _deploy(
        self,
        account: Any,
        interface: ContractInterface,
        data: str,
        progress: Optional[ProgressCallback],
    ) -> dict:
        if account is not None:
            request = TransactionRequest(
                data=data,
                from_address=signer_address(account),
                gas=DEPLOY_GAS_LIMIT,
                gas_price=await self.estimator.estimate(),
            )
            receipt = await self.dispatcher.send_signed(account, request, progress)
        else:
            receipt = await self.dispatcher.deploy_interactive(data, progress)

        address = receipt.get("contractAddress")
        if address:
            # The handle only changes once the deployment has succeeded.
            interface.address = address
            self.contract = interface
            self.address = address
            logger.info("deployed at %s (tx %s)", address, receipt.get("transactionHash"))
        return receipt

    # ------------------------------------------------------------------
    # Send
    # ------------------------------------------------------------------

    def send(
        self,
        account: Any,
        data: str,
        value: Union[int, str, None] = "0x0",
        progress: Optional[ProgressCallback] = None,
    ) -> Coroutine[Any, Any, dict]:
        """
        Send raw calldata to the bound address.

        Uses the pre-signed path with ``account``; without one, falls back
        to the wallet-interactive path when a wallet transport exists.

        Raises:
            ContractNotBoundError: The handle has no address
            NoSignerAvailableError: No account and no wallet transport
        """
        to = self._require_address()
        if account is None and not self._has_wallet():
            raise NoSignerAvailableError("Send needs an account or a wallet transport")
        return self._send(account, to, data, _normalise_value(value), progress)

    async def _send(
        self,
        account: Any,
        to: str,
        data: str,
        value: str,
        progress: Optional[ProgressCallback],
    ) -> dict:
        if account is None:
            return await self.dispatcher.send_interactive(
                {"to": to, "data": data, "value": value}, progress
            )

        request = TransactionRequest(
            data=data,
            from_address=signer_address(account),
            gas=SEND_GAS_LIMIT,
            gas_price=await self.estimator.estimate(),
            to=to,
            value=value,
        )
        return await self.dispatcher.send_signed(account, request, progress)

    def transact(
        self,
        account: Any,
        function_name: str,
        args: Sequence[Any] = (),
        value: Union[int, str, None] = "0x0",
        progress: Optional[ProgressCallback] = None,
    ) -> Coroutine[Any, Any, dict]:
        """Encode ``function_name(*args)`` and ``send`` it."""
        data = self.contract.encode_call(function_name, args)
        return self.send(account, data, value, progress)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def call(
        self,
        function_name: str,
        args: Sequence[Any] = (),
        from_address: Optional[str] = None,
    ) -> Coroutine[Any, Any, Any]:
        """Read-only ``eth_call``; resolves to the decoded return value."""
        to = self._require_address()
        data = self.contract.encode_call(function_name, args)
        return self._call(function_name, to, data, from_address)

    async def _call(
        self, function_name: str, to: str, data: str, from_address: Optional[str]
    ) -> Any:
        tx = {"to": to, "data": data}
        if from_address:
            tx["from"] = from_address
        result = await self.transport.request({"method": "eth_call", "params": [tx, "latest"]})
        if result is None or result == "0x":
            return None
        return self.contract.decode_result(function_name, result)

    async def get_balance(self) -> int:
        """Contract balance in wei."""
        address = self._require_address()
        return from_hex_quantity(
            await self.transport.request(
                {"method": "eth_getBalance", "params": [address, "latest"]}
            )
        )

    async def get_my_account(self, account: Any = None) -> str:
        if account is not None:
            return signer_address(account)
        return await self.dispatcher.default_account()

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def get_contract(self) -> ContractInterface:
        return self.contract

    def get_abi(self) -> list:
        return self.abi

    def get_json(self) -> dict:
        return self.json

    def get_address(self) -> Optional[str]:
        return self.address
