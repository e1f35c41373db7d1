"""Pick a sibling render server to hand new uploads to."""

import random
from typing import Optional, Sequence


def pick_server(servers: Sequence[str], host: Optional[str]) -> Optional[str]:
    """Random configured server whose address does not contain ``host``.

    Returns:
        A server address, or None when no other server is configured
    """
    candidates = [server for server in servers if not host or host not in server]
    if not candidates:
        return None
    return random.choice(candidates)
