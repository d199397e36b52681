"""
EVMChainPort Test Suite

Tests the web3.py chain port against a mocked AsyncWeb3:
    - Initialization and configuration errors
    - Allowance / balance / hasMinted / record reads
    - approve and mint submission (gas buffer, fees, signing confirmation)
    - Receipt lookup with confirmation counting and revert replay
    - LocalWalletContext chain switching
"""

from unittest.mock import AsyncMock

import pytest
from eth_abi import encode
from eth_account import Account
from eth_utils import function_signature_to_4byte_selector
from web3.exceptions import ContractLogicError, TransactionNotFound, Web3Exception

from chain_mocks import (
    MOCK_BLOCK_NUMBER,
    MOCK_CHAIN_ID,
    MOCK_CONTRACT_ADDRESS,
    MOCK_OWNER_ADDRESS,
    MOCK_PRIVATE_KEY,
    MOCK_TOKEN_ID,
    MOCK_USDC_BASE,
    MockWeb3Provider,
    make_request,
    mint_transfer_log,
    mock_contract_call,
    mock_tx_function,
)
from mintflow.engine.exceptions import (
    BlockchainInteractionError,
    ChainSwitchError,
    ConfigurationError,
    ContractRevertError,
    RevertCode,
    UserRejectedError,
)
from mintflow.ports.evm import EVMChainPort, LocalWalletContext
from mintflow.schemas.bases import TransactionHandle, TransactionKind, TransactionStatus


@pytest.fixture
def mock_web3():
    return MockWeb3Provider()


@pytest.fixture
def port(mock_web3):
    return EVMChainPort(
        private_key=MOCK_PRIVATE_KEY,
        chain_id=MOCK_CHAIN_ID,
        contract_address=MOCK_CONTRACT_ADDRESS,
        token_address=MOCK_USDC_BASE,
        web3=mock_web3,
    )


def mint_handle(tx_hash: str = "0x" + "ab" * 32) -> TransactionHandle:
    return TransactionHandle(tx_hash=tx_hash, kind=TransactionKind.MINT, chain_id=MOCK_CHAIN_ID)


class TestInitialization:

    def test_derives_wallet_address(self, port):
        assert port.wallet_address == MOCK_OWNER_ADDRESS
        assert port.spender == MOCK_CONTRACT_ADDRESS

    def test_missing_private_key_raises(self):
        with pytest.raises(ConfigurationError):
            EVMChainPort(
                private_key=None,
                chain_id=MOCK_CHAIN_ID,
                contract_address=MOCK_CONTRACT_ADDRESS,
                token_address=MOCK_USDC_BASE,
            )

    def test_unsupported_chain_without_rpc_raises(self):
        with pytest.raises(ConfigurationError):
            EVMChainPort(
                private_key=MOCK_PRIVATE_KEY,
                chain_id=999,
                contract_address=MOCK_CONTRACT_ADDRESS,
                token_address=MOCK_USDC_BASE,
            )

    def test_explicit_rpc_allows_unlisted_chain(self):
        port = EVMChainPort(
            private_key=MOCK_PRIVATE_KEY,
            chain_id=999,
            contract_address=MOCK_CONTRACT_ADDRESS,
            token_address=MOCK_USDC_BASE,
            rpc_url="http://localhost:8545",
        )
        assert port.chain_id == 999


class TestReads:

    @pytest.mark.asyncio
    async def test_read_allowance(self, port, mock_web3):
        mock_web3.token.functions.allowance.return_value = mock_contract_call(1_000_000)

        assert await port.read_allowance(MOCK_OWNER_ADDRESS, MOCK_CONTRACT_ADDRESS) == 1_000_000
        mock_web3.token.functions.allowance.assert_called_once_with(MOCK_OWNER_ADDRESS, MOCK_CONTRACT_ADDRESS)

    @pytest.mark.asyncio
    async def test_read_allowance_rpc_failure(self, port, mock_web3):
        mock_web3.token.functions.allowance.return_value = mock_contract_call(side_effect=Web3Exception("timeout"))

        with pytest.raises(BlockchainInteractionError):
            await port.read_allowance(MOCK_OWNER_ADDRESS, MOCK_CONTRACT_ADDRESS)

    @pytest.mark.asyncio
    async def test_read_balance_and_has_minted(self, port, mock_web3):
        mock_web3.token.functions.balanceOf.return_value = mock_contract_call(2_000_000)
        mock_web3.nft.functions.hasMinted.return_value = mock_contract_call(True)

        assert await port.read_balance(MOCK_OWNER_ADDRESS) == 2_000_000
        assert await port.read_has_minted(MOCK_OWNER_ADDRESS) is True

    @pytest.mark.asyncio
    async def test_read_mint_price_and_block_number(self, port, mock_web3):
        mock_web3.nft.functions.getMintPriceUSDC.return_value = mock_contract_call(1_000_000)

        assert await port.read_mint_price() == 1_000_000
        assert await port.read_block_number() == MOCK_BLOCK_NUMBER

    @pytest.mark.asyncio
    async def test_read_employee_record(self, port, mock_web3):
        mock_web3.nft.functions.employees.return_value = mock_contract_call(
            ["Jim Halpert", "Jim", "Pranks.", 1700000000, 77]
        )

        record = await port.read_employee(MOCK_TOKEN_ID)

        assert record.token_id == MOCK_TOKEN_ID
        assert record.character == "Jim Halpert"
        assert record.minted_at == 1700000000
        assert record.fid == 77


class TestSubmission:

    @pytest.mark.asyncio
    async def test_submit_approve_signs_and_broadcasts(self, port, mock_web3):
        approve_fn = mock_tx_function(MOCK_USDC_BASE, gas=50000)
        mock_web3.token.functions.approve.return_value = approve_fn

        handle = await port.submit_approve(MOCK_CONTRACT_ADDRESS, 1_000_000)

        assert handle.kind is TransactionKind.APPROVE
        assert handle.tx_hash == "0x" + "ab" * 32
        mock_web3.token.functions.approve.assert_called_once_with(MOCK_CONTRACT_ADDRESS, 1_000_000)
        params = approve_fn.build_transaction.call_args.args[0]
        assert params["gas"] == 55000
        assert params["nonce"] == 3
        assert params["maxPriorityFeePerGas"] == 10
        assert params["maxFeePerGas"] == 210

        built = {**params, "to": MOCK_USDC_BASE, "data": "0x1234", "value": 0}
        signed = Account.from_key(MOCK_PRIVATE_KEY).sign_transaction(built)
        mock_web3.eth.send_raw_transaction.assert_awaited_once_with(signed.raw_transaction)

    @pytest.mark.asyncio
    async def test_submit_mint_passes_request_fields(self, port, mock_web3):
        mock_web3.nft.functions.mintEmployeeID.return_value = mock_tx_function(MOCK_CONTRACT_ADDRESS)
        request = make_request()

        handle = await port.submit_mint(request)

        assert handle.kind is TransactionKind.MINT
        mock_web3.nft.functions.mintEmployeeID.assert_called_once_with(
            request.character,
            request.display_name,
            request.analysis_text,
            request.fid,
            request.metadata_url,
        )

    @pytest.mark.asyncio
    async def test_legacy_gas_price_when_fee_history_unavailable(self, port, mock_web3):
        mint_fn = mock_tx_function(MOCK_CONTRACT_ADDRESS)
        mock_web3.nft.functions.mintEmployeeID.return_value = mint_fn
        mock_web3.eth.fee_history = AsyncMock(side_effect=Web3Exception("method not found"))

        await port.submit_mint(make_request())

        params = mint_fn.build_transaction.call_args.args[0]
        assert params["gasPrice"] == 20_000_000_000
        assert "maxFeePerGas" not in params

    @pytest.mark.asyncio
    async def test_estimation_revert_raises_structured_error(self, port, mock_web3):
        mock_web3.nft.functions.mintEmployeeID.return_value = mock_tx_function(
            MOCK_CONTRACT_ADDRESS,
            estimate_error=ContractLogicError("execution reverted: ERC20: insufficient allowance"),
        )

        with pytest.raises(ContractRevertError) as exc_info:
            await port.submit_mint(make_request())

        assert exc_info.value.code is RevertCode.INSUFFICIENT_ALLOWANCE
        mock_web3.eth.send_raw_transaction.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_estimation_failure_falls_back_to_fixed_gas(self, port, mock_web3):
        mint_fn = mock_tx_function(MOCK_CONTRACT_ADDRESS, estimate_error=Web3Exception("rpc overloaded"))
        mock_web3.nft.functions.mintEmployeeID.return_value = mint_fn

        await port.submit_mint(make_request())

        assert mint_fn.build_transaction.call_args.args[0]["gas"] == 300000

    @pytest.mark.asyncio
    async def test_declined_signature_raises_user_rejected(self, mock_web3):
        async def decline(kind, tx):
            return False

        port = EVMChainPort(
            private_key=MOCK_PRIVATE_KEY,
            chain_id=MOCK_CHAIN_ID,
            contract_address=MOCK_CONTRACT_ADDRESS,
            token_address=MOCK_USDC_BASE,
            confirm_signing=decline,
            web3=mock_web3,
        )
        mock_web3.token.functions.approve.return_value = mock_tx_function(MOCK_USDC_BASE)

        with pytest.raises(UserRejectedError):
            await port.submit_approve(MOCK_CONTRACT_ADDRESS, 1_000_000)
        mock_web3.eth.send_raw_transaction.assert_not_awaited()


class TestReceipts:

    @pytest.mark.asyncio
    async def test_pending_transaction_returns_none(self, port, mock_web3):
        mock_web3.eth.get_transaction_receipt = AsyncMock(side_effect=TransactionNotFound("not found"))

        assert await port.get_receipt(mint_handle()) is None

    @pytest.mark.asyncio
    async def test_confirmed_receipt_counts_confirmations_and_logs(self, port, mock_web3):
        log = mint_transfer_log()
        log["topics"] = [bytes.fromhex(topic[2:]) for topic in log["topics"]]
        log["data"] = b""
        mock_web3.eth.get_transaction_receipt = AsyncMock(return_value={
            "status": 1,
            "blockNumber": 100,
            "gasUsed": 80000,
            "logs": [log],
        })

        receipt = await port.get_receipt(mint_handle())

        assert receipt.status is TransactionStatus.CONFIRMED
        assert receipt.confirmations == MOCK_BLOCK_NUMBER - 100 + 1
        assert receipt.minted_token_id() == MOCK_TOKEN_ID

    @pytest.mark.asyncio
    async def test_reverted_receipt_replays_for_reason(self, port, mock_web3):
        selector = function_signature_to_4byte_selector("ERC20InsufficientAllowance(address,uint256,uint256)")
        payload = "0x" + (selector + encode(["address", "uint256", "uint256"], [MOCK_CONTRACT_ADDRESS, 0, 1_000_000])).hex()
        mock_web3.eth.get_transaction_receipt = AsyncMock(return_value={
            "status": 0,
            "blockNumber": 100,
            "gasUsed": 30000,
            "logs": [],
        })
        mock_web3.eth.call = AsyncMock(side_effect=ContractLogicError("execution reverted", data=payload))

        receipt = await port.get_receipt(mint_handle())

        assert receipt.status is TransactionStatus.REVERTED
        assert receipt.revert_code == RevertCode.INSUFFICIENT_ALLOWANCE.value
        assert receipt.revert_reason == "ERC20InsufficientAllowance"
        assert mock_web3.eth.call.call_args.kwargs["block_identifier"] == 100

    @pytest.mark.asyncio
    async def test_reverted_receipt_without_replayable_reason(self, port, mock_web3):
        mock_web3.eth.get_transaction_receipt = AsyncMock(return_value={
            "status": 0,
            "blockNumber": 100,
            "gasUsed": 30000,
        })

        receipt = await port.get_receipt(mint_handle())

        assert receipt.status is TransactionStatus.REVERTED
        assert receipt.revert_code == RevertCode.UNKNOWN.value


class TestLocalWalletContext:

    @pytest.mark.asyncio
    async def test_switch_to_known_chain(self):
        wallet = LocalWalletContext(MOCK_OWNER_ADDRESS, 1)

        await wallet.switch_chain(84532)

        assert wallet.chain_id == 84532
        assert wallet.is_connected

    @pytest.mark.asyncio
    async def test_switch_to_unknown_chain_fails(self):
        wallet = LocalWalletContext(MOCK_OWNER_ADDRESS, MOCK_CHAIN_ID)

        with pytest.raises(ChainSwitchError):
            await wallet.switch_chain(1)
        assert wallet.chain_id == MOCK_CHAIN_ID

    def test_disconnected_wallet(self):
        assert not LocalWalletContext(None, None).is_connected
