"""Centralized event payload shaping for the wire.

Room events are sent as their model fields plus the "type" tag. Tuples
become lists and enums their string values, so the payload packs cleanly
with MessagePack.
"""

from typing import Any

from game.logic.events import ServiceEvent


def service_event_payload(event: ServiceEvent) -> dict[str, Any]:
    """Return the wire-format dict for a ServiceEvent payload."""
    return event.data.model_dump(mode="json")
