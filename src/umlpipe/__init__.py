"""umlpipe - local PlantUML rendering bridge.

Features:
- One persistent PlantUML process fed in pipe mode, with FIFO correlation
  of requests to rendered SVG frames and timeout-based restart
- Loopback HTTP bridge serving GET /svg/~h<HEX> with port negotiation
- YAML configuration and loguru logging

Usage:
    # Start the bridge on the first free port in 8080-8090
    umlpipe-serve serve

    # Render a file once
    umlpipe-serve render diagram.puml -o diagram.svg
"""

from importlib.metadata import version

__version__ = version("umlpipe")

__all__ = ["__version__"]
