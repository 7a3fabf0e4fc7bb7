from .http_api import create_app
from .simulated_client import SimulatedGameClient, create_simulated_client

__all__ = ["create_app", "SimulatedGameClient", "create_simulated_client"]
