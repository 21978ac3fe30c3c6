from web3 import AsyncWeb3

from abi.dao_governance_abi import GOVERNOR_ABI
from utils.logger_utils import get_logger

logger = get_logger("Quorum Reader")


class QuorumReader(object):
    """Reads `quorum(blockNumber)` from a Governor contract."""

    def __init__(self, web3: AsyncWeb3):
        self._web3 = web3

    async def read_quorum(self, governor_address: str, block_number: int) -> int:
        """
        Returns the quorum the governor reports for the snapshot block `block_number`.

        The block is passed as the call argument: Governor.quorum(timepoint) only
        accepts timepoints strictly in the past, so the call runs against the
        node's latest state. Errors propagate to the caller unchanged.
        """
        checksum_address = self._web3.to_checksum_address(governor_address)
        contract = self._web3.eth.contract(address=checksum_address, abi=GOVERNOR_ABI)
        quorum = await contract.functions.quorum(block_number).call()
        logger.debug(f"quorum({block_number}) at {checksum_address} = {quorum}")
        return int(quorum)

    async def close(self) -> None:
        """Closes the provider's cached aiohttp sessions."""
        await self._web3.provider.disconnect()
