"""Adapter protocol for provider sleep payloads.

Every provider shape implements this interface and is selected by its
explicit provider tag (see factory.get_adapter), never by sniffing fields.
The pipeline depends only on the protocol, never on concrete mappers.
"""

from typing import Any, Protocol, runtime_checkable

from sleep.domain.models import CanonicalSleepMetrics, SleepProvider


@runtime_checkable
class SleepAdapter(Protocol):
    """Common interface for all provider sleep adapters."""

    provider: SleepProvider

    def split(self, raw_response: Any) -> list[dict[str, Any]]:
        """Split a provider envelope into per-session payloads.

        Raises AdapterError(UNRECOGNIZED_SHAPE) if the envelope itself is unusable.
        """
        ...

    def map_record(self, raw_record: dict[str, Any], subject_id: str) -> CanonicalSleepMetrics:
        """Map one per-session payload into a canonical record.

        Pure: no I/O, no clock reads. Raises AdapterError or
        SleepRecordValidationError; fields that cannot be derived are None.
        """
        ...

    def parse(self, raw_response: Any, subject_id: str) -> list[CanonicalSleepMetrics]:
        """Split and map a whole envelope; the first failing session aborts."""
        ...
