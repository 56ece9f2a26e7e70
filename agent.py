#!/usr/bin/env python3
"""Compatibility wrapper to launch the SPP bridge."""
from __future__ import annotations

from spp_bridge.agent import main



if __name__ == "__main__":  # pragma: no cover
    main()
