"""
Dependency Injection Container.

`DependencyContainer` exposes the base singletons and the domain containers
behind one object; `get_container()` returns the process-wide instance.
"""

import logging

from rentpay.config.settings import Settings
from rentpay.core.container.base import BaseContainer
from rentpay.core.container.payments import PaymentsContainer

logger = logging.getLogger(__name__)


class DependencyContainer(BaseContainer):
    def __init__(self, settings: Settings | None = None):
        super().__init__(settings)
        self.payments = PaymentsContainer(self)


_container: DependencyContainer | None = None


def get_container() -> DependencyContainer:
    global _container
    if _container is None:
        _container = DependencyContainer()
    return _container


async def reset_container() -> None:
    """Close and drop the global container (shutdown)."""
    global _container
    if _container is not None:
        await _container.aclose()
        logger.info("Dependency container closed")
    _container = None


__all__ = ["BaseContainer", "DependencyContainer", "PaymentsContainer", "get_container", "reset_container"]
