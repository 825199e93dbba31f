"""Long-running services hosted on one [SocialGraph][wotgraph.graph.engine.SocialGraph].

Services are the top layer of the diamond DAG, depending on
[wotgraph.graph][wotgraph.graph], [wotgraph.core][wotgraph.core] and
[wotgraph.models][wotgraph.models]. Each service extends
[BaseService][wotgraph.core.base_service.BaseService] and implements
``async def run()`` for one cycle of work.

Attributes:
    Api: FastAPI query surface (graph, profile, cache control, relay status),
        served by uvicorn as a background task.
    Warmer: Periodic forced rebuilds of configured seed groups so the graph
        cache stays warm. Runs inside Api when its ``warmer`` section is set.

Examples:
    ```python
    from wotgraph.graph import SocialGraph
    from wotgraph.services import Warmer

    engine = SocialGraph.from_yaml("config/wotgraph.yaml")
    async with engine:
        await Warmer(engine=engine).run()
    ```
"""

from .api import Api, ApiConfig
from .warmer import SeedGroup, Warmer, WarmerConfig


__all__ = [
    "Api",
    "ApiConfig",
    "SeedGroup",
    "Warmer",
    "WarmerConfig",
]
