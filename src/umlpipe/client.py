"""Client for a running local bridge.

Usage:
    from umlpipe.client import fetch_svg

    success, result = fetch_svg("@startuml\\nA -> B\\n@enduml", port=8080)
    if success:
        Path("out.svg").write_text(result)
    else:
        print(result)  # error message
"""

from __future__ import annotations

import httpx

from umlpipe.bridge.codec import build_render_url
from umlpipe.bridge.ports import LOOPBACK_HOST
from umlpipe.logging import LogSpan


def bridge_base_url(port: int) -> str:
    return f"http://{LOOPBACK_HOST}:{port}"


def fetch_svg(
    source: str,
    port: int,
    *,
    timeout: float = 30.0,
) -> tuple[bool, str]:
    """Render source through the bridge listening on port.

    Args:
        source: Diagram source text
        port: Port of the running bridge
        timeout: Request timeout in seconds

    Returns:
        Tuple of (success, result). If success, result is the SVG text.
        If failure, result is an error message string.
    """
    url = build_render_url(source, bridge_base_url(port))

    with LogSpan(span="client.fetch", port=port, bytes=len(source)) as span:
        try:
            with httpx.Client(timeout=timeout) as client:
                response = client.get(url)
                response.raise_for_status()
                span.add("status", response.status_code)
                return True, response.text

        except httpx.HTTPStatusError as e:
            span.add("error", f"HTTP {e.response.status_code}")
            return False, f"HTTP error ({e.response.status_code}): {e.response.text[:200]}"

        except httpx.RequestError as e:
            span.add("error", str(e))
            return False, f"Request failed: {e}"
