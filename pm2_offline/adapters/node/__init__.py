"""Node.js toolchain adapters — npm installs, pm2 probes."""

from pm2_offline.adapters.node.npm import NpmAdapter, locate_npm
from pm2_offline.adapters.node.pm2 import Pm2Adapter

__all__ = ["NpmAdapter", "Pm2Adapter", "locate_npm"]
