"""Cache warmer: periodic forced rebuilds of configured seed groups.

See Also:
    [Warmer][wotgraph.services.warmer.service.Warmer]: The service class.
    [WarmerConfig][wotgraph.services.warmer.configs.WarmerConfig]: Service
        configuration.
"""

from .configs import SeedGroup, WarmerConfig
from .service import Warmer


__all__ = ["SeedGroup", "Warmer", "WarmerConfig"]
