"""HTTP query service over the social graph engine.

See Also:
    [Api][wotgraph.services.api.service.Api]: The service class.
    [ApiConfig][wotgraph.services.api.configs.ApiConfig]: Service configuration.
"""

from .configs import ApiConfig
from .service import Api


__all__ = ["Api", "ApiConfig"]
