"""Products grouped by store location."""
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from weekshop.config.settings import get_settings
from weekshop.domain.types import LocationId, Product, StoreLocation


def group_sort_key(product: Product) -> Tuple[int, str, str]:
    """Order inside a group: sequence, then name, then id for determinism."""
    return (product.sequence_number, product.name.casefold(), product.id)


class GroupIndex:
    """Read-only projection of a product collection by location.

    Rebuild it whenever the product collection changes; it keeps no state of
    its own beyond the snapshot it was built from.
    """

    def __init__(self, products: Iterable[Product], sequence_step: Optional[int] = None):
        self._groups: Dict[LocationId, List[Product]] = {}
        for product in products:
            self._groups.setdefault(product.store_location_id, []).append(product)
        for members in self._groups.values():
            members.sort(key=group_sort_key)
        self._step = sequence_step if sequence_step is not None else get_settings().NEW_PRODUCT_SEQUENCE_STEP

    def __len__(self) -> int:
        return sum(len(members) for members in self._groups.values())

    def __contains__(self, location_id: object) -> bool:
        return location_id in self._groups

    @property
    def location_ids(self) -> List[LocationId]:
        return list(self._groups)

    def group(self, location_id: LocationId) -> List[Product]:
        """Products in a location ordered by sequence (a new list)."""
        return list(self._groups.get(location_id, ()))

    def as_dict(self) -> Dict[LocationId, List[Product]]:
        return {location_id: list(members) for location_id, members in self._groups.items()}

    def position_of(self, product_id: str) -> Optional[Tuple[LocationId, int]]:
        """Location and index of a product, if indexed."""
        for location_id, members in self._groups.items():
            for index, product in enumerate(members):
                if product.id == product_id:
                    return location_id, index
        return None

    def max_sequence(self, location_id: LocationId) -> int:
        """Highest sequence number in a location, 0 when it has no products."""
        members = self._groups.get(location_id)
        if not members:
            return 0
        return max(product.sequence_number for product in members)

    def next_sequence(self, location_id: LocationId) -> int:
        """Suggested sequence number for a new product in a location."""
        return self.max_sequence(location_id) + self._step

    def walking_order(
        self,
        locations: Sequence[StoreLocation]
    ) -> List[Tuple[Optional[StoreLocation], List[Product]]]:
        """
        Groups in store walking order.

        Args:
            locations: Known store locations

        Returns:
            (location, products) pairs ordered by location sequence; every known
            location is listed even when empty, and products pointing at an
            unknown location are collected last under None
        """
        ordered = sorted(locations, key=lambda location: (location.sequence_number, location.name.casefold()))
        known = {location.id for location in ordered}
        result: List[Tuple[Optional[StoreLocation], List[Product]]] = [
            (location, self.group(location.id)) for location in ordered
        ]
        orphans = [
            product
            for location_id, members in self._groups.items()
            if location_id not in known
            for product in members
        ]
        if orphans:
            result.append((None, sorted(orphans, key=group_sort_key)))
        return result
