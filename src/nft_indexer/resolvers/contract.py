"""Contract resolution: verified ABI, base/token uri and total supply of an address"""

from dataclasses import dataclass
from typing import Dict, Optional, Union

from loguru import logger

from .broadcast import Broadcaster
from ..abi import ContractAbi, decode_output, encode_call, is_uint, output_types, to_display
from ..clients.etherscan import EtherscanClient
from ..errors import AbiError, ExplorerError
from ..models import Contract

URI_FUNCTIONS = ("baseURI", "tokenURI", "uri")
TOTAL_SUPPLY = "totalSupply"


# Requests

@dataclass(frozen=True)
class ApiKeyRequest:
    api_key: Optional[str]


@dataclass(frozen=True)
class ContractRequest:
    address: str


@dataclass(frozen=True)
class UriRequest:
    address: str
    # Passed to tokenURI/uri style functions, 1 rather than 0 as token 0 often does not exist
    token: int = 1


@dataclass(frozen=True)
class TotalSupplyRequest:
    address: str


ContractResolverRequest = Union[ApiKeyRequest, ContractRequest, UriRequest, TotalSupplyRequest]


# Responses

@dataclass(frozen=True)
class ContractResolved:
    contract: Contract

    @property
    def address(self) -> str:
        return self.contract.address


@dataclass(frozen=True)
class NoContract:
    address: str


@dataclass(frozen=True)
class ContractFailed:
    address: str
    attempts: int
    reason: str = ""


@dataclass(frozen=True)
class UriResolved:
    address: str
    uri: str
    # Set when the uri was returned for a specific token and so embeds it
    token: Optional[int] = None


@dataclass(frozen=True)
class NoUri:
    address: str


@dataclass(frozen=True)
class UriFailed:
    address: str


@dataclass(frozen=True)
class TotalSupplyResolved:
    address: str
    total_supply: int


@dataclass(frozen=True)
class NoTotalSupply:
    address: str


@dataclass(frozen=True)
class TotalSupplyFailed:
    address: str


ContractResolverResponse = Union[
    ContractResolved,
    NoContract,
    ContractFailed,
    UriResolved,
    NoUri,
    UriFailed,
    TotalSupplyResolved,
    NoTotalSupply,
    TotalSupplyFailed,
]


class ContractResolver(Broadcaster[ContractResolverRequest, ContractResolverResponse]):
    """
    Answers contract questions for an address through the explorer API.

    ABIs of resolved contracts are kept for the lifetime of the resolver;
    contracts are immutable so they are never invalidated.
    """

    def __init__(self, client: EtherscanClient):
        super().__init__()
        self.client = client
        self._contracts: Dict[str, ContractAbi] = {}

    def abi(self, address: str) -> Optional[ContractAbi]:
        return self._contracts.get(address)

    async def handle(self, request: ContractResolverRequest) -> None:
        if isinstance(request, ApiKeyRequest):
            self.client.set_api_key(request.api_key)
        elif isinstance(request, ContractRequest):
            await self._resolve_contract(request.address)
        elif isinstance(request, UriRequest):
            await self._resolve_uri(request.address, request.token)
        elif isinstance(request, TotalSupplyRequest):
            await self._resolve_total_supply(request.address)
        else:
            raise TypeError(f"Unsupported request {request!r}")

    async def _resolve_contract(self, address: str) -> Optional[ContractAbi]:
        logger.debug(f"Requesting contract for {address}...")
        try:
            contracts = await self.client.get_source_code(address)
        except ExplorerError as e:
            attempts = e.attempts or 1
            logger.error(f"Contract at {address} could not be retrieved after {attempts} attempts: {e}")
            self._respond(ContractFailed(address, attempts, str(e)))
            return None

        if not contracts:
            logger.debug(f"No contract for {address}")
            self._respond(NoContract(address))
            return None

        contract = contracts[0]
        logger.debug(f"Contract {contract.contract_name} found at {address}")
        self._contracts[address] = contract.abi
        self._respond(ContractResolved(Contract(address=address, name=contract.contract_name)))
        return contract.abi

    async def _contract(self, address: str) -> Optional[ContractAbi]:
        abi = self._contracts.get(address)
        if abi is None:
            # Resolve first; subscribers receive the contract outcome as well
            logger.debug(f"Contract for {address} not known locally, requesting...")
            abi = await self._resolve_contract(address)
        return abi

    async def _call(self, address: str, function: dict, args: list) -> Optional[tuple]:
        """Encode, call and decode ``function``; None if any step fails"""
        try:
            data = encode_call(function, args)
        except AbiError as e:
            logger.error(f"Could not encode inputs for '{function.get('name')}' on contract at {address}: {e}")
            return None

        logger.debug(f"Calling '{function.get('name')}' on contract at {address}...")
        try:
            result = await self.client.call(address, data, tag="latest")
        except ExplorerError as e:
            logger.error(f"Call to '{function.get('name')}' on {address} failed after {e.attempts or 1} attempts: {e}")
            return None

        try:
            return decode_output(function, result)
        except AbiError:
            return None

    async def _resolve_uri(self, address: str, token: int) -> None:
        abi = await self._contract(address)
        if abi is None:
            return

        for name in URI_FUNCTIONS:
            function = abi.function(name)
            if function is None:
                continue
            inputs = function.get("inputs", [])
            if not inputs:
                args = []
            elif len(inputs) == 1 and is_uint(inputs[0]):
                args = [token]
            else:
                continue

            logger.debug(f"{name} function found on contract, preparing contract call...")
            values = await self._call(address, function, args)
            if not values:
                logger.debug("Contract call did not return a result")
                self._respond(UriFailed(address))
                return

            uri = to_display(values[0], output_types(function)[0])
            logger.debug(f"Uri for {address}: {uri}")
            self._respond(UriResolved(address, uri, token if args else None))
            return

        self._respond(NoUri(address))

    async def _resolve_total_supply(self, address: str) -> None:
        abi = await self._contract(address)
        if abi is None:
            return

        function = abi.function(TOTAL_SUPPLY)
        if function is None or function.get("inputs"):
            self._respond(NoTotalSupply(address))
            return

        values = await self._call(address, function, [])
        if not values or isinstance(values[0], bool) or not isinstance(values[0], int):
            self._respond(TotalSupplyFailed(address))
            return

        logger.debug(f"Total supply of {address}: {values[0]}")
        self._respond(TotalSupplyResolved(address, values[0]))
