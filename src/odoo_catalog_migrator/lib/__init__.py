"initialize Library."

from . import (
    cache,
    client,
    conf_lib,
    conflicts,
    executor,
    internal,
    planner,
    preflight,
    rest_client,
    rpc_client,
    state_store,
)

__all__ = [
    "cache",
    "client",
    "conf_lib",
    "conflicts",
    "executor",
    "internal",
    "planner",
    "preflight",
    "rest_client",
    "rpc_client",
    "state_store",
]
