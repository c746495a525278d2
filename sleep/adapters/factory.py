"""Adapter factory: returns the mapper registered for an explicit provider tag.

Selection is by tag only. A payload is never routed by inspecting its
fields, because provider shapes overlap on common names.
"""

from shared.exceptions import UnsupportedProviderError
from sleep.adapters.cycle_mapper import CycleMapper
from sleep.adapters.protocol import SleepAdapter
from sleep.adapters.session_mapper import SessionMapper
from sleep.domain.models import SleepProvider

_ADAPTERS: dict[SleepProvider, SleepAdapter] = {
    SleepProvider.SESSION: SessionMapper(),
    SleepProvider.CYCLE: CycleMapper(),
}


def supported_providers() -> list[str]:
    return [p.value for p in _ADAPTERS]


def get_adapter(provider: str | SleepProvider) -> SleepAdapter:
    """Return the adapter for the given provider tag.

    Raises UnsupportedProviderError for unknown tags.
    """
    try:
        tag = SleepProvider(provider)
    except ValueError:
        raise UnsupportedProviderError(str(provider), supported_providers()) from None
    return _ADAPTERS[tag]
