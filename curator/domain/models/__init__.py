from curator.domain.models.container import (
    ACCEPTED_KINDS,
    Container,
    ContainerType,
    Item,
    ItemKind,
    unique_ids,
)
from curator.domain.models.membership import (
    AddMember,
    MembershipEdit,
    RemoveMember,
    ReorderMembers,
    describe_edit,
)

__all__ = [
    "ACCEPTED_KINDS",
    "AddMember",
    "Container",
    "ContainerType",
    "Item",
    "ItemKind",
    "MembershipEdit",
    "RemoveMember",
    "ReorderMembers",
    "describe_edit",
    "unique_ids",
]
