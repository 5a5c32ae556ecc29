"""Identifier to display-name registry used for human-readable reports.

The book is never consulted on the execution path, so its contents cannot
change a measured CU value.
"""

from __future__ import annotations

from typing import Iterator, Mapping

from cubench.address import Address


class AddressBook:
    """Maps :class:`Address` values to display names.

    Re-registering an address overwrites the previous name. Entries are
    never removed.
    """

    def __init__(self) -> None:
        self._names: dict[Address, str] = {}

    @classmethod
    def from_mapping(cls, mapping: Mapping[Address, str]) -> AddressBook:
        book = cls()
        book.update(mapping)
        return book

    def register(self, address: Address, name: str) -> None:
        self._names[address] = name

    def update(self, mapping: Mapping[Address, str]) -> None:
        for address, name in mapping.items():
            self.register(address, name)

    def lookup(self, address: Address) -> str:
        """Return the registered name, or the base58 text of *address*."""
        return self._names.get(address, str(address))

    def __contains__(self, address: object) -> bool:
        return address in self._names

    def __len__(self) -> int:
        return len(self._names)

    def __iter__(self) -> Iterator[Address]:
        return iter(self._names)

    def __repr__(self) -> str:
        return f"AddressBook({len(self._names)} entries)"
