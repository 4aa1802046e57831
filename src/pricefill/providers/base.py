"""Abstract price provider interface.

Defines the contract for every market-data adapter in the fallback chain.
The orchestrator depends only on this interface, so providers can be added,
removed or reordered through ProviderSettings.order without touching the
orchestration logic.
"""

from abc import ABC, abstractmethod

from pricefill.models import PriceTarget, ProviderOutcome


class PriceProvider(ABC):
    """Abstract base class for historical price adapters.

    Implementations translate (token, instant, target) into provider-specific
    calls and return a ProviderOutcome. Ordinary absence is NoData, transport
    or payload failures are TransientError; neither is raised. Anything else
    is a bug and must propagate.
    """

    name: str = "provider"

    @abstractmethod
    async def resolve(
        self, token: str, instant_ms: int, target: PriceTarget
    ) -> ProviderOutcome:
        """Look up the USD price extreme of token at instant_ms."""
        ...

    async def close(self) -> None:
        """Release network resources. Default: nothing to release."""
        return None
