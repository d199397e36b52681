"""
Mint Workflow Test Mocks Module

Provides in-memory fakes for every collaborator of the mint orchestrator so
the workflow can be tested without blockchain connectivity or real timers.

Key Components:
    - Mock addresses, keys and chain constants
    - FakeClock: monotonic clock plus awaitable sleep that advances it
    - FakeChain: scripted ChainReadPort + ChainWritePort
    - FakeWallet / FakePublisher: wallet context and metadata publisher
    - Builders for configs, requests and orchestrators

Usage:
    from chain_mocks import FakeChain, FakeClock, make_orchestrator

    chain = FakeChain(allowance=0)
    orchestrator, clock = make_orchestrator(chain)
    outcome = await orchestrator.request_mint(MOCK_USER, MOCK_ANALYSIS, MOCK_SHARE_PROOF)
"""

import asyncio
from typing import Dict, List, Optional, Tuple
from unittest.mock import AsyncMock, Mock

from eth_account import Account
from web3 import AsyncWeb3

from mintflow.config import MintConfig
from mintflow.engine.exceptions import ChainSwitchError, ContractRevertError, RevertCode
from mintflow.engine.policies import RetryPolicy, SyncPolicy, WatchPolicy
from mintflow.minting.orchestrator import MintOrchestrator
from mintflow.ports.bases import ChainReadPort, ChainWritePort, MetadataPublisher, WalletContext
from mintflow.schemas.bases import (
    TRANSFER_TOPIC,
    TransactionHandle,
    TransactionKind,
    TransactionReceipt,
    TransactionStatus,
)
from mintflow.schemas.metadata import EmployeeMetadata
from mintflow.schemas.mint import AnalysisResult, MintRequest, UserContext


# ========================================================================
# Mock Blockchain Constants
# ========================================================================

MOCK_PRIVATE_KEY = "0x1234567890123456789012345678901234567890123456789012345678901234"
MOCK_OWNER_ADDRESS = AsyncWeb3.to_checksum_address(Account.from_key(MOCK_PRIVATE_KEY).address)
MOCK_CONTRACT_ADDRESS = AsyncWeb3.to_checksum_address("0x1234567890123456789012345678901234567890")
MOCK_USDC_BASE = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"

MOCK_CHAIN_ID = 8453
MOCK_MINT_PRICE = 1_000_000
MOCK_TOKEN_ID = 42
MOCK_METADATA_URL = "https://pub.example.r2.dev/what-x-are-you/metadata-1234-1700000000000.json"
MOCK_SHARE_PROOF = "0xcasthash"

MOCK_USER = UserContext(fid=1234, display_name="Dwight", username="dwight")
MOCK_ANALYSIS = AnalysisResult(
    character="Dwight Schrute",
    analysis_text="Assistant to the regional manager energy.",
    image_url="https://pub.example.r2.dev/what-x-are-you/share-image-1234-1700000000000.png",
)

ALLOWANCE_REVERT = "ERC20: insufficient allowance"


def make_request(**overrides) -> MintRequest:
    data = {
        "character": MOCK_ANALYSIS.character,
        "display_name": MOCK_USER.display_name,
        "analysis_text": MOCK_ANALYSIS.analysis_text,
        "fid": MOCK_USER.fid,
        "metadata_url": MOCK_METADATA_URL,
        "owner": MOCK_OWNER_ADDRESS,
    }
    data.update(overrides)
    return MintRequest(**data)


def mint_transfer_log(token_id: int = MOCK_TOKEN_ID, to: str = MOCK_OWNER_ADDRESS) -> Dict:
    return {
        "address": MOCK_CONTRACT_ADDRESS,
        "topics": [
            TRANSFER_TOPIC,
            "0x" + "0" * 64,
            "0x" + to[2:].lower().rjust(64, "0"),
            "0x" + format(token_id, "x").rjust(64, "0"),
        ],
        "data": "0x",
    }


# ========================================================================
# Fake clock
# ========================================================================

class FakeClock:
    """Monotonic clock whose ``sleep`` advances time instantly and records the delay."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


# ========================================================================
# Fake chain
# ========================================================================

class FakeChain(ChainReadPort, ChainWritePort):
    """
    Scripted chain read/write port.

    Attributes:
        allowance: Allowance returned once ``allowance_reads`` is exhausted;
            set to the approved amount when an approval confirms
        allowance_reads: Values returned by the next allowance reads, in order
            (models a node lagging behind a confirmed approval)
        approve_error: Exception raised by ``submit_approve``
        approve_result: "confirmed" or "revert"
        mint_gate: Event ``submit_mint`` waits on before submitting, when set
        mint_errors: Per-submission exceptions for ``submit_mint`` (None submits)
        mint_results: Per-submission receipt outcomes: "confirmed", "race" or "revert"
        pending_polls: Receipt polls answered with None before a receipt appears
        calls: Ordered log of port calls
    """

    def __init__(
        self,
        allowance: int = 0,
        balance: int = 2_000_000,
        has_minted: bool = False,
        spender: str = MOCK_CONTRACT_ADDRESS,
    ):
        self.allowance = allowance
        self.allowance_reads: List[int] = []
        self.balance = balance
        self.has_minted = has_minted
        self._spender = spender

        self.approve_error: Optional[Exception] = None
        self.approve_result = "confirmed"
        self.approve_gate: Optional[asyncio.Event] = None
        self.approve_started = asyncio.Event()
        self.mint_gate: Optional[asyncio.Event] = None
        self.mint_started = asyncio.Event()
        self.mint_errors: List[Optional[Exception]] = []
        self.mint_results: List[str] = []
        self.pending_polls = 0

        self.calls: List[str] = []
        self.approve_calls: List[Tuple[str, int]] = []
        self.mint_calls: List[MintRequest] = []
        self.receipt_polls: Dict[str, int] = {}
        self._outcomes: Dict[str, Tuple[str, int]] = {}

    @property
    def spender(self) -> str:
        return self._spender

    async def read_allowance(self, owner: str, spender: str) -> int:
        self.calls.append("read_allowance")
        if self.allowance_reads:
            return self.allowance_reads.pop(0)
        return self.allowance

    async def read_balance(self, owner: str) -> int:
        self.calls.append("read_balance")
        return self.balance

    async def read_has_minted(self, owner: str) -> bool:
        self.calls.append("read_has_minted")
        return self.has_minted

    async def submit_approve(self, spender: str, amount: int) -> TransactionHandle:
        self.calls.append("approve")
        self.approve_calls.append((spender, amount))
        self.approve_started.set()
        if self.approve_gate is not None:
            await self.approve_gate.wait()
        if self.approve_error is not None:
            raise self.approve_error
        tx_hash = f"0xapprove{len(self.approve_calls)}"
        self._outcomes[tx_hash] = (self.approve_result, amount)
        return TransactionHandle(tx_hash=tx_hash, kind=TransactionKind.APPROVE, chain_id=MOCK_CHAIN_ID)

    async def submit_mint(self, request: MintRequest) -> TransactionHandle:
        self.calls.append("mint")
        self.mint_calls.append(request)
        self.mint_started.set()
        if self.mint_gate is not None:
            await self.mint_gate.wait()
        error = self.mint_errors.pop(0) if self.mint_errors else None
        if error is not None:
            raise error
        tx_hash = f"0xmint{len(self.mint_calls)}"
        result = self.mint_results.pop(0) if self.mint_results else "confirmed"
        self._outcomes[tx_hash] = (result, 0)
        return TransactionHandle(tx_hash=tx_hash, kind=TransactionKind.MINT, chain_id=MOCK_CHAIN_ID)

    async def get_receipt(self, handle: TransactionHandle) -> Optional[TransactionReceipt]:
        polls = self.receipt_polls.get(handle.tx_hash, 0) + 1
        self.receipt_polls[handle.tx_hash] = polls
        if polls <= self.pending_polls:
            return None

        result, amount = self._outcomes[handle.tx_hash]
        if result == "confirmed":
            logs = []
            if handle.kind is TransactionKind.APPROVE:
                self.allowance = amount
            else:
                self.has_minted = True
                logs = [mint_transfer_log()]
            return TransactionReceipt(
                tx_hash=handle.tx_hash,
                status=TransactionStatus.CONFIRMED,
                block_number=100,
                gas_used=50000,
                confirmations=1,
                logs=logs,
            )
        if result == "race":
            reason, code = ALLOWANCE_REVERT, RevertCode.INSUFFICIENT_ALLOWANCE
        else:
            reason, code = "Mint paused", RevertCode.UNKNOWN
        return TransactionReceipt(
            tx_hash=handle.tx_hash,
            status=TransactionStatus.REVERTED,
            block_number=100,
            gas_used=21000,
            revert_reason=reason,
            revert_code=code.value,
        )


def allowance_revert() -> ContractRevertError:
    return ContractRevertError(ALLOWANCE_REVERT, RevertCode.INSUFFICIENT_ALLOWANCE)


# ========================================================================
# Fake wallet and publisher
# ========================================================================

class FakeWallet(WalletContext):
    """Wallet context; ``switch_outcome`` is "switch", "decline" or "ignore"."""

    def __init__(
        self,
        address: Optional[str] = MOCK_OWNER_ADDRESS,
        chain_id: Optional[int] = MOCK_CHAIN_ID,
        switch_outcome: str = "switch",
    ):
        self._address = address
        self._chain_id = chain_id
        self.switch_outcome = switch_outcome
        self.switch_requests: List[int] = []

    @property
    def address(self) -> Optional[str]:
        return self._address

    @property
    def chain_id(self) -> Optional[int]:
        return self._chain_id

    async def switch_chain(self, chain_id: int) -> None:
        self.switch_requests.append(chain_id)
        if self.switch_outcome == "decline":
            raise ChainSwitchError("User declined the network switch")
        if self.switch_outcome == "switch":
            self._chain_id = chain_id


class FakePublisher(MetadataPublisher):
    """Metadata publisher returning ``url`` or raising ``error``."""

    def __init__(self, url: str = MOCK_METADATA_URL, error: Optional[Exception] = None):
        self.url = url
        self.error = error
        self.gate: Optional[asyncio.Event] = None
        self.started = asyncio.Event()
        self.published: List[Tuple[EmployeeMetadata, int]] = []

    async def publish(self, metadata: EmployeeMetadata, *, fid: int) -> str:
        self.published.append((metadata, fid))
        self.started.set()
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.url


# ========================================================================
# Builders
# ========================================================================

def make_config(**overrides) -> MintConfig:
    data = {
        "chain_id": MOCK_CHAIN_ID,
        "contract_address": MOCK_CONTRACT_ADDRESS,
        "token_address": MOCK_USDC_BASE,
        "mint_price": MOCK_MINT_PRICE,
        "sync": SyncPolicy(grace_period=4.0, fallback_delay=2.0, max_fallback_attempts=1),
        "retry": RetryPolicy(race_backoff=3.0, max_race_retries=1),
        "watch": WatchPolicy(poll_interval=2.0, timeout=10.0),
    }
    data.update(overrides)
    return MintConfig(**data)


def make_orchestrator(
    chain: FakeChain,
    wallet: Optional[FakeWallet] = None,
    publisher: Optional[FakePublisher] = None,
    config: Optional[MintConfig] = None,
    clock: Optional[FakeClock] = None,
    on_status=None,
) -> Tuple[MintOrchestrator, FakeClock]:
    clock = clock or FakeClock()
    orchestrator = MintOrchestrator(
        config or make_config(),
        reader=chain,
        writer=chain,
        wallet=wallet or FakeWallet(),
        publisher=publisher or FakePublisher(),
        on_status=on_status,
        sleep=clock.sleep,
        clock=clock,
    )
    return orchestrator, clock


# ========================================================================
# Mock Web3 (for EVMChainPort)
# ========================================================================

MOCK_TX_HASH_BYTES = bytes.fromhex("ab" * 32)
MOCK_BLOCK_NUMBER = 110


class AwaitableValue:
    """Value that can be awaited any number of times, like ``w3.eth.block_number``."""

    def __init__(self, value):
        self.value = value

    def __await__(self):
        return asyncio.sleep(0, result=self.value).__await__()


def mock_contract_call(value=None, side_effect=None) -> Mock:
    call = Mock()
    call.call = AsyncMock(return_value=value, side_effect=side_effect)
    return call


def mock_tx_function(to: str, gas: int = 50000, estimate_error: Optional[Exception] = None) -> Mock:
    fn = Mock()
    fn.estimate_gas = AsyncMock(return_value=gas, side_effect=estimate_error)
    fn.build_transaction = AsyncMock(side_effect=lambda params: {**params, "to": to, "data": "0x1234", "value": 0})
    return fn


class MockWeb3Provider:
    """
    Minimal AsyncWeb3 stand-in for EVMChainPort.

    ``token`` and ``nft`` are the contract mocks returned by ``eth.contract``
    for the payment token and the NFT contract respectively.
    """

    def __init__(self, token_address: str = MOCK_USDC_BASE, block_number: int = MOCK_BLOCK_NUMBER):
        self.token = Mock()
        self.nft = Mock()
        self._token_address = AsyncWeb3.to_checksum_address(token_address)

        self.eth = Mock()
        self.eth.contract = Mock(side_effect=self._contract)
        self.eth.block_number = AwaitableValue(block_number)
        self.eth.get_transaction_count = AsyncMock(return_value=3)
        self.eth.fee_history = AsyncMock(return_value={"baseFeePerGas": [100, 100], "reward": [[10]]})
        self.eth.gas_price = AwaitableValue(20_000_000_000)
        self.eth.send_raw_transaction = AsyncMock(return_value=MOCK_TX_HASH_BYTES)
        self.eth.get_transaction_receipt = AsyncMock(return_value=None)
        self.eth.get_transaction = AsyncMock(return_value={
            "from": MOCK_OWNER_ADDRESS,
            "to": MOCK_CONTRACT_ADDRESS,
            "input": "0x1234",
            "value": 0,
        })
        self.eth.call = AsyncMock(return_value=b"")

    def _contract(self, address, abi):
        return self.token if address == self._token_address else self.nft
