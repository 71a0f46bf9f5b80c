"""stacklens - transformable call trees for sampled stack profiles."""

from __future__ import annotations


__version__ = "0.1.0"
