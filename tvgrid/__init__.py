"""
tvgrid - multi-slot live TV playlist engine

- Extended M3U playlist parsing into multi-source channels
- Batched, time-boxed validation of channel sources
- Per-slot playback failover across alternate sources
"""

__version__ = "1.0.0"
__license__ = "MIT"

from tvgrid.config import get_config, load_config

__all__ = [
    "__version__",
    "get_config",
    "load_config",
]
