"""In-memory chain fakes shared by the tests"""

from typing import List, Optional

import pytest

from gas_oracle.chain.base import ChainObserver, PriceSubmitter
from gas_oracle.config import OracleConfig, PricerConfig, EpochConfig
from gas_oracle.errors import ChainError

# Hardhat's first dev account
OWNER_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
OWNER_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"


class FakeChain(ChainObserver, PriceSubmitter):
    """
    A chain that produces blocks on demand and stores one gas price.

    Submitted prices are applied immediately, like a receipt wait.
    """

    def __init__(self, height: int = 0, gas_price: float = 10.0, owner: str = OWNER_ADDRESS):
        self.height = height
        self.gas_price = gas_price
        self.owner = owner

        self.submitted: List[float] = []
        self.height_reads = 0
        self.fail_reads = False
        self.fail_price_reads = False
        self.fail_submits = False

    def mine(self, blocks: int = 1):
        self.height += blocks

    async def read_latest_height(self) -> int:
        self.height_reads += 1
        if self.fail_reads:
            raise ChainError("connection refused")
        return self.height

    async def read_on_chain_price(self) -> float:
        if self.fail_price_reads:
            raise ChainError("eth_call timed out")
        return self.gas_price

    async def verify_authority(self, signer_address: str) -> bool:
        return signer_address.lower() == self.owner.lower()

    async def submit_price_update(self, new_price: float) -> Optional[str]:
        if self.fail_submits:
            raise ChainError("nonce too low")
        self.submitted.append(new_price)
        self.gas_price = float(int(new_price))
        return "0x" + f"{len(self.submitted):064x}"


@pytest.fixture
def chain():
    return FakeChain()


@pytest.fixture
def config():
    return OracleConfig(
        pricer=PricerConfig(
            floor_price=1.0,
            target_gas_per_second=100.0,
            max_percent_change_per_epoch=0.1,
            significant_factor=0.05,
        ),
        epoch=EpochConfig(
            epoch_length_seconds=0.05,
            average_block_gas_limit_per_epoch=5.0,
        ),
        private_key=OWNER_KEY,
    )


@pytest.fixture
def make_chain():
    return FakeChain
