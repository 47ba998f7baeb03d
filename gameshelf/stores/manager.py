"""
Connector Registry - Manages the per-platform connectors.

Provides a unified lookup so sync and linking code never branches on
platform to find the client it needs.
"""
from typing import Dict, List, Optional
import logging

from .base import Platform, PlatformConnector


logger = logging.getLogger(__name__)


class ConnectorRegistry:
    """Holds one PlatformConnector per platform."""

    def __init__(self, connectors: Optional[List[PlatformConnector]] = None):
        self._connectors: Dict[Platform, PlatformConnector] = {}
        for connector in connectors or []:
            self.register_connector(connector)

    def register_connector(self, connector: PlatformConnector):
        """Register a platform connector, replacing any previous one for that platform."""
        self._connectors[connector.platform] = connector
        logger.info(f"Registered connector: {connector.platform.value}")

    def get_connector(self, platform: Platform) -> Optional[PlatformConnector]:
        """Get a specific connector by platform."""
        return self._connectors.get(platform)

    @property
    def platforms(self) -> List[Platform]:
        return list(self._connectors.keys())
