"""
=============================================================================
CORE NETWORKING
=============================================================================

    SocketServer   listening socket and accept loop
    Connection     buffered reads and orderly close for one client
    ThreadPool     worker threads, one per active connection

=============================================================================
"""

from .socket_server import SocketServer
from .connection import Connection, ConnectionState
from .thread_pool import ThreadPool

__all__ = [
    "SocketServer",
    "Connection",
    "ConnectionState",
    "ThreadPool",
]
