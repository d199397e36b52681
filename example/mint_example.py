import asyncio
import logging

import httpx

from mintflow import AnalysisResult, MintOrchestrator, UserContext, load_config_from_env
from mintflow.ports.evm import EVMChainPort, LocalWalletContext
from mintflow.ports.http import HttpMetadataPublisher

logging.basicConfig(level=logging.INFO)

config = load_config_from_env()  # reads EVM_PRIVATE_KEY, MINT_CONTRACT_ADDRESS, MINT_METADATA_ENDPOINT, ...


async def confirm(kind, tx):
    answer = await asyncio.to_thread(input, f"Sign {kind.value} transaction to {tx['to']}? [y/N] ")
    return answer.strip().lower() == "y"


async def main():
    port = EVMChainPort(
        private_key=config.private_key,
        chain_id=config.chain_id,
        contract_address=config.contract_address,
        token_address=config.resolved_token_address(),
        rpc_url=config.rpc_url,
        confirm_signing=confirm,
    )
    wallet = LocalWalletContext(port.wallet_address, config.chain_id)

    async with httpx.AsyncClient() as client:
        orchestrator = MintOrchestrator(
            config,
            reader=port,
            writer=port,
            wallet=wallet,
            publisher=HttpMetadataPublisher(config.metadata_endpoint, client=client),
            on_status=lambda state, message: print(f"[{state.value}] {message}"),
        )
        return await orchestrator.request_mint(
            UserContext(fid=1234, display_name="Dwight"),
            AnalysisResult(character="Dwight Schrute", analysis_text="Beets. Bears. Battlestar Galactica."),
            share_proof="0xcasthash",  # Replace with the hash of the share cast
        )


if __name__ == "__main__":
    outcome = asyncio.run(main())
    print("Outcome:", outcome.state.value, outcome.tx_hash or outcome.error)
