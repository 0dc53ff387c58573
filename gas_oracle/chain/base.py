"""
Capability interfaces for the chain collaborators.

The update loop only talks to the chain through these two classes, so it
can be driven by in-memory fakes in tests.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional


class ChainObserver(ABC):
    """Read-only view of the chain and the gas price oracle contract"""

    @abstractmethod
    async def read_latest_height(self) -> int:
        """Return the current chain tip block number"""
        pass

    @abstractmethod
    async def read_on_chain_price(self) -> float:
        """Return the gas price currently recorded on-chain"""
        pass

    @abstractmethod
    async def verify_authority(self, signer_address: str) -> bool:
        """Return True if signer_address may update the on-chain price"""
        pass

    async def close(self):
        """Release any held connections"""
        pass

    def get_status(self) -> Dict[str, Any]:
        return {}


class PriceSubmitter(ABC):
    """Writes a new gas price on-chain"""

    @abstractmethod
    async def submit_price_update(self, new_price: float) -> Optional[str]:
        """
        Craft, sign and broadcast a price update.

        Returns:
            Transaction hash, if one was produced
        """
        pass

    async def close(self):
        pass

    def get_status(self) -> Dict[str, Any]:
        return {}
