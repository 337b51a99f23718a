"""
Permalink and stream URL resolution.

    - resolver: Resolver, used by CloudClient.resolve()/resolve_stream_url()
    - stream: Stream, the resolved signed streaming URL and its metadata
"""

from cloudapi.resolve.resolver import Resolver
from cloudapi.resolve.stream import Stream

__all__ = ["Resolver", "Stream"]
