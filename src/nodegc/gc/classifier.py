"""Keep/orphan classification of cloud instances."""

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Protocol

from nodegc.core.models import KeepReason
from nodegc.interfaces.cloud_types import CloudInstance
from nodegc.interfaces.kubernetes_provider import MachineRecord

DEFAULT_RESOLUTION_WINDOW = timedelta(minutes=1)


class LinkLookup(Protocol):
    def contains(self, provider_id: str) -> bool: ...


@dataclass(frozen=True)
class MachineIndex:
    """Point-in-time view of which provider IDs Machines own or are claiming.

    Attributes:
        owned: provider ID -> name of the Machine whose status carries it
        linked: provider ID -> name of the Machine whose linked annotation names it
    """

    owned: dict[str, str] = field(default_factory=dict)
    linked: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_machines(cls, machines: Iterable[MachineRecord]) -> "MachineIndex":
        owned: dict[str, str] = {}
        linked: dict[str, str] = {}
        for machine in machines:
            if machine.provider_id:
                owned[machine.provider_id] = machine.name
            if machine.linked_provider_id:
                linked[machine.linked_provider_id] = machine.name
        return cls(owned=owned, linked=linked)

    def owner_of(self, provider_id: str) -> str | None:
        return self.owned.get(provider_id)

    def linker_of(self, provider_id: str) -> str | None:
        return self.linked.get(provider_id)

    def __len__(self) -> int:
        return len(self.owned.keys() | self.linked.keys())


@dataclass(frozen=True)
class Classification:
    """Decision for a single instance."""

    instance: CloudInstance
    reason: KeepReason | None = None

    @property
    def keep(self) -> bool:
        return self.reason is not None

    @property
    def orphaned(self) -> bool:
        return self.reason is None


def classify(
    instance: CloudInstance,
    machines: MachineIndex,
    link_cache: LinkLookup,
    now: datetime,
    resolution_window: timedelta = DEFAULT_RESOLUTION_WINDOW,
) -> Classification:
    """Decide whether an instance is kept or orphaned.

    An instance is kept if any one of these holds, checked in order:

    1. It launched less than ``resolution_window`` ago; its Machine may not
       be visible through the API yet.
    2. A Machine's status carries its provider ID.
    3. A Machine's linked annotation names its provider ID; the Machine is
       mid-registration and its own provider ID is not populated yet.
    4. The link cache holds its provider ID; the Link controller began claiming
       it and the Machine may not have reached cluster storage.

    The function reads only its arguments, so the same snapshots can be
    shared by every instance in a pass.
    """
    if now - instance.launch_time < resolution_window:
        return Classification(instance, KeepReason.WITHIN_RESOLUTION_WINDOW)
    if machines.owner_of(instance.provider_id) is not None:
        return Classification(instance, KeepReason.OWNED_BY_MACHINE)
    if machines.linker_of(instance.provider_id) is not None:
        return Classification(instance, KeepReason.LINKED_BY_MACHINE)
    if link_cache.contains(instance.provider_id):
        return Classification(instance, KeepReason.RECENTLY_LINKED)
    return Classification(instance)
