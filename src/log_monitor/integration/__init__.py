from .rpc_client import LogMonitorClient
from .sync_client import DashboardState, SyncClient
