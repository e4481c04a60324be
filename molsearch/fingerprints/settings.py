"""Immutable fingerprint parameter containers.

`FingerprintParameters` is the universal bundle of every knob any fingerprint type
can use. `FingerprintSettings` is the normalized descriptor a fingerprint type builds
from such a bundle: it keeps only the values relevant to that type and marks all
others as `UNAVAILABLE`. Settings descriptors are what the search index persists
as fingerprint metadata and what is compared to decide if an index can be queried
with a given fingerprint.
"""

from dataclasses import dataclass, fields
from typing import Any, Mapping

from ..utils.serialization import JSONSerializable

UNAVAILABLE = None
"""Marker for a parameter that does not apply to a fingerprint type."""

LEGACY_UNAVAILABLE = -1
"""Value used for `UNAVAILABLE` in metadata written by older index versions."""

PARAMETER_NAMES = (
    "torsionPathLength",
    "minPath",
    "maxPath",
    "atomPairMinPath",
    "atomPairMaxPath",
    "numBits",
    "radius",
    "layerFlags",
    "avalonQueryFlag",
    "avalonBitFlags",
)


def _parse_value(key: str, value: Any) -> int | None:
    if value is None or value == LEGACY_UNAVAILABLE:
        return UNAVAILABLE
    message = f"Parameter '{key}' must be an integer, got: {value!r}"
    if isinstance(value, bool):
        raise ValueError(message)
    try:
        parsed = int(value)
    except (TypeError, OverflowError) as exc:
        raise ValueError(message) from exc
    if parsed != value:
        raise ValueError(message)
    return parsed


def _check_keys(data: Mapping[str, Any], allowed: tuple[str, ...]):
    unknown = sorted(set(data) - set(allowed))
    if unknown:
        raise ValueError(f"Unknown fingerprint parameters: {', '.join(unknown)}")


@dataclass(frozen=True)
class FingerprintParameters:
    """Universal parameter bundle, a superset of the parameters of all fingerprint
    types. Every parameter is optional and defaults to `UNAVAILABLE`.

    Attributes:
        torsionPathLength (int): number of atoms in a topological torsion
        minPath (int): minimum path length of path based fingerprints
        maxPath (int): maximum path length of path based fingerprints
        atomPairMinPath (int): minimum distance between atoms of an atom pair
        atomPairMaxPath (int): maximum distance between atoms of an atom pair
        numBits (int): length of the fingerprint bit vector
        radius (int): radius of circular fingerprints
        layerFlags (int): layers to include in layered fingerprints
        avalonQueryFlag (int): 1 to calculate Avalon query fingerprints
        avalonBitFlags (int): feature classes of Avalon fingerprints
    """

    torsionPathLength: int | None = UNAVAILABLE
    minPath: int | None = UNAVAILABLE
    maxPath: int | None = UNAVAILABLE
    atomPairMinPath: int | None = UNAVAILABLE
    atomPairMaxPath: int | None = UNAVAILABLE
    numBits: int | None = UNAVAILABLE
    radius: int | None = UNAVAILABLE
    layerFlags: int | None = UNAVAILABLE
    avalonQueryFlag: int | None = UNAVAILABLE
    avalonBitFlags: int | None = UNAVAILABLE

    @classmethod
    def fromDict(cls, data: Mapping[str, Any]) -> "FingerprintParameters":
        """Create a parameter bundle from a mapping, e.g. an index schema entry.

        Args:
            data (Mapping[str, Any]):
                parameter values by name, missing parameters are unavailable and
                the legacy value -1 is read as unavailable

        Returns:
            FingerprintParameters: the parameter bundle

        Raises:
            ValueError: if the mapping contains unknown keys or non-integer values
        """
        _check_keys(data, PARAMETER_NAMES)
        return cls(**{key: _parse_value(key, value) for key, value in data.items()})


@dataclass(frozen=True)
class FingerprintSettings(JSONSerializable):
    """Normalized and immutable settings of a single fingerprint type.

    Instances are created by `FingerprintType.getSpecification`, which sets all
    parameters the type does not use to `UNAVAILABLE`. Two instances are equal
    if all their fields are equal, the fingerprint type name included.

    Attributes:
        name (str): display name of the fingerprint type, e.g. "Morgan"
        torsionPathLength (int): number of atoms in a topological torsion
        minPath (int): minimum path length of path based fingerprints
        maxPath (int): maximum path length of path based fingerprints
        atomPairMinPath (int): minimum distance between atoms of an atom pair
        atomPairMaxPath (int): maximum distance between atoms of an atom pair
        numBits (int): length of the fingerprint bit vector
        radius (int): radius of circular fingerprints
        layerFlags (int): layers to include in layered fingerprints
        avalonQueryFlag (int): 1 to calculate Avalon query fingerprints
        avalonBitFlags (int): feature classes of Avalon fingerprints
    """

    name: str
    torsionPathLength: int | None = UNAVAILABLE
    minPath: int | None = UNAVAILABLE
    maxPath: int | None = UNAVAILABLE
    atomPairMinPath: int | None = UNAVAILABLE
    atomPairMaxPath: int | None = UNAVAILABLE
    numBits: int | None = UNAVAILABLE
    radius: int | None = UNAVAILABLE
    layerFlags: int | None = UNAVAILABLE
    avalonQueryFlag: int | None = UNAVAILABLE
    avalonBitFlags: int | None = UNAVAILABLE

    @staticmethod
    def isAvailable(value: int | None) -> bool:
        """Check if a parameter value is set.

        Args:
            value (int | None): parameter value

        Returns:
            bool: `True` if the value is not `UNAVAILABLE`
        """
        return value is not UNAVAILABLE

    def availableFields(self) -> dict[str, int]:
        """Return the numeric parameters that hold a value."""
        return {
            key: getattr(self, key)
            for key in PARAMETER_NAMES
            if self.isAvailable(getattr(self, key))
        }

    def toDict(self) -> dict[str, Any]:
        """Convert the settings to a plain dictionary of all fields."""
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def fromDict(cls, data: Mapping[str, Any]) -> "FingerprintSettings":
        """Recreate settings from a dictionary as written by `toDict`.

        Values of -1 found in metadata of older indexes are read as `UNAVAILABLE`.
        No normalization or validation takes place here.

        Args:
            data (Mapping[str, Any]): field values by name, `name` is required

        Returns:
            FingerprintSettings: the settings

        Raises:
            ValueError: if `name` is missing or unknown keys are present
        """
        if "name" not in data:
            raise ValueError("Fingerprint settings require a 'name'.")
        _check_keys(data, ("name",) + PARAMETER_NAMES)
        values = {
            key: _parse_value(key, value)
            for key, value in data.items()
            if key != "name"
        }
        return cls(name=str(data["name"]), **values)

    def __str__(self):
        params = ", ".join(f"{k}={v}" for k, v in self.availableFields().items())
        return f"{self.name}({params})"
