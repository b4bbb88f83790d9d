# /*
# Copyright 2026 The Reclaim E2E Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# */

"""Kubernetes resource quantities and resource-list arithmetic."""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation
from typing import Iterable, Mapping

_BINARY_SUFFIXES = {
    "Ki": 2 ** 10,
    "Mi": 2 ** 20,
    "Gi": 2 ** 30,
    "Ti": 2 ** 40,
    "Pi": 2 ** 50,
    "Ei": 2 ** 60,
}
_DECIMAL_SUFFIXES = {
    "n": Decimal("1e-9"),
    "u": Decimal("1e-6"),
    "m": Decimal("1e-3"),
    "": Decimal(1),
    "k": Decimal("1e3"),
    "M": Decimal("1e6"),
    "G": Decimal("1e9"),
    "T": Decimal("1e12"),
    "P": Decimal("1e15"),
    "E": Decimal("1e18"),
}
_QUANTITY_RE = re.compile(r"^([+-]?[0-9.]+(?:[eE][+-]?[0-9]+)?)([a-zA-Z]*)$")


def parse_quantity(value: str | int | float) -> Decimal:
    """Parse a Kubernetes quantity string into base units.

    Args:
        value: Quantity such as ``"1000m"``, ``"1Gi"`` or ``4``.

    Returns:
        The quantity as a Decimal in base units (cores, bytes, ...).

    Raises:
        ValueError: If the quantity is malformed.
    """
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    match = _QUANTITY_RE.match(value.strip())
    if not match:
        raise ValueError(f"Invalid quantity: {value!r}")
    number, suffix = match.groups()
    try:
        base = Decimal(number)
    except InvalidOperation as err:
        raise ValueError(f"Invalid quantity: {value!r}") from err
    if suffix in _BINARY_SUFFIXES:
        return base * _BINARY_SUFFIXES[suffix]
    if suffix in _DECIMAL_SUFFIXES:
        return base * _DECIMAL_SUFFIXES[suffix]
    raise ValueError(f"Invalid quantity suffix {suffix!r} in {value!r}")


def format_quantity(value: Decimal) -> str:
    """Render base units as a quantity string, in milli-units when fractional."""
    if value == value.to_integral_value():
        return str(int(value))
    return f"{int(value * 1000)}m"


class Resources:
    """A resource list (name -> Decimal) supporting the arithmetic the harness needs."""

    def __init__(self, values: Mapping[str, Decimal] | None = None) -> None:
        self._values: dict[str, Decimal] = {k: v for k, v in (values or {}).items()}

    @classmethod
    def from_quantities(cls, quantities: Mapping[str, str | int | float] | None) -> Resources:
        return cls({name: parse_quantity(q) for name, q in (quantities or {}).items()})

    @classmethod
    def total(cls, items: Iterable[Resources]) -> Resources:
        result = cls()
        for item in items:
            result = result + item
        return result

    def get(self, name: str) -> Decimal:
        return self._values.get(name, Decimal(0))

    def names(self) -> set[str]:
        return set(self._values)

    def __add__(self, other: Resources) -> Resources:
        names = self.names() | other.names()
        return Resources({n: self.get(n) + other.get(n) for n in names})

    def __sub__(self, other: Resources) -> Resources:
        names = self.names() | other.names()
        return Resources({n: self.get(n) - other.get(n) for n in names})

    def fits_in(self, capacity: Resources) -> bool:
        """Whether every resource named here is available in *capacity*."""
        return all(self.get(n) <= capacity.get(n) for n in self.names())

    def is_empty(self) -> bool:
        return all(v <= 0 for v in self._values.values())

    def clamp(self) -> Resources:
        """Drop non-positive entries."""
        return Resources({n: v for n, v in self._values.items() if v > 0})

    def to_quantities(self) -> dict[str, str]:
        return {n: format_quantity(v) for n, v in sorted(self._values.items())}

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Resources):
            return NotImplemented
        names = self.names() | other.names()
        return all(self.get(n) == other.get(n) for n in names)

    def __repr__(self) -> str:
        return f"Resources({self.to_quantities()})"


def pod_requests(pod: dict) -> Resources:
    """Sum the container resource requests of a pod manifest."""
    containers = pod.get("spec", {}).get("containers", [])
    return Resources.total(
        Resources.from_quantities(c.get("resources", {}).get("requests")) for c in containers
    )


def slots_in(capacity: Resources, slot: Resources) -> int:
    """Count how many *slot* requests fit into *capacity*."""
    if slot.is_empty():
        raise ValueError("Slot must request at least one resource")
    count = 0
    remaining = capacity
    while slot.fits_in(remaining):
        remaining = remaining - slot
        count += 1
    return count
