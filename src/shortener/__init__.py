"""
=============================================================================
SHORTENER - In-Memory URL Shortener on a From-Scratch HTTP/1.1 Server
=============================================================================

An authenticated POST turns a long URL into a short Base62 code; a GET of
that code redirects back to the URL.

    $ curl -u admin:s3cret -d '{"url": "https://www.theobeers.com/"}' localhost:8887
    {"code": "k902KW0", "short_url": "/k902KW0"}

    $ curl -i localhost:8887/k902KW0
    HTTP/1.1 302 Found
    Location: https://www.theobeers.com/

=============================================================================
PACKAGE LAYOUT
=============================================================================

    shortener/
    ├── hasher.py        djb2 + Base62 short codes
    ├── store.py         thread-safe in-memory code store
    ├── auth.py          HTTP Basic credential checks
    ├── config.py        ServerConfig (env + validation)
    ├── server.py        ShortenerServer, wires everything together
    ├── core/            sockets, connections, thread pool
    ├── http/            request parsing, responses, routing
    ├── middleware/      access logging, Basic-auth gate
    └── handlers/        shorten / redirect endpoints

Nothing is persisted: restarting the server forgets every link.

=============================================================================
"""

__version__ = "1.0.0"

from .config import ServerConfig
from .server import ShortenerServer
from .store import CodeStore, UrlEntry
from .hasher import hash_url

__all__ = [
    "ShortenerServer",
    "ServerConfig",
    "CodeStore",
    "UrlEntry",
    "hash_url",
    "__version__",
]
