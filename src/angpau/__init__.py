"""Prize-card game engine: weighted one-time sessions and a daily game rotation."""

from __future__ import annotations

__version__ = "1.0.0"

__all__: list[str] = ["__version__"]
