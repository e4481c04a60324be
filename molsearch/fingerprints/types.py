import inspect
from enum import Enum

from rdkit.Chem import Mol
from rdkit.DataStructs import ExplicitBitVect

from .families import (
    AtomPairFamily,
    AvalonFamily,
    FeatMorganFamily,
    FingerprintFamily,
    LayeredFamily,
    MACCSFamily,
    MorganFamily,
    PatternFamily,
    RDKitFamily,
    TorsionFamily,
)
from .settings import FingerprintParameters, FingerprintSettings
from .. import logs


class FingerprintType(Enum):
    """Enum of the supported fingerprint types.

    The member values are the display names that are stored in index metadata.
    They identify fingerprints of existing indexes and must never change.
    Everything specific to a type is delegated to its `FingerprintFamily`.
    """

    MORGAN = "Morgan"
    FEATMORGAN = "FeatMorgan"
    ATOMPAIR = "AtomPair"
    TORSION = "Torsion"
    RDKIT = "RDKit"
    AVALON = "Avalon"
    LAYERED = "Layered"
    MACCS = "MACCS"
    PATTERN = "Pattern"

    @property
    def family(self) -> FingerprintFamily:
        """The implementation of this fingerprint type."""
        return _FAMILIES[self]

    def getSpecification(
        self, params: FingerprintParameters | None = None, **kwargs
    ) -> FingerprintSettings:
        """Create the settings of this fingerprint type.

        Not all parameters are used by all fingerprint types. Only the parameters
        used by this type are included in the returned settings, all others are
        set to `UNAVAILABLE`, so that settings of the same type only differ in
        parameters that matter.

        Args:
            params (FingerprintParameters):
                bundle with the parameter values, if `None` the bundle is created
                from the keyword arguments
            **kwargs: parameter values, only used if `params` is `None`

        Returns:
            FingerprintSettings: the settings, never `None`
        """
        if params is None:
            params = FingerprintParameters(**kwargs)
        elif kwargs:
            raise ValueError("Pass either a parameter bundle or keyword arguments.")
        return self.family.getSpecification(params)

    def validateSpecification(self, settings: FingerprintSettings | None):
        """Validate the settings for this fingerprint type.

        Args:
            settings (FingerprintSettings): settings to validate

        Raises:
            InvalidFingerprintSettingsError:
                if settings are missing or invalid and cannot be used
        """
        self.family.validateSpecification(settings)

    def calculate(self, mol: Mol, settings: FingerprintSettings) -> ExplicitBitVect:
        """Calculate the fingerprint of a molecule with the given settings.
        Settings must be validated with `validateSpecification` first.

        Args:
            mol (Mol): molecule to calculate the fingerprint for
            settings (FingerprintSettings): validated settings of this type

        Returns:
            ExplicitBitVect: the fingerprint
        """
        logs.logger.debug(f"Calculating fingerprint: {settings}")
        return self.family.calculate(mol, settings)

    def getLength(self, settings: FingerprintSettings) -> int:
        """Return the length of fingerprints calculated with the given settings."""
        return self.family.getLength(settings)

    def __str__(self):
        """Return the display name of the fingerprint type."""
        return self.value

    @classmethod
    def parseString(cls, name: str | None) -> "FingerprintType | None":
        """Determine the fingerprint type from a string.

        The string is first compared with the member names (e.g. "MORGAN"). If
        this fails, it is compared case insensitively with the display names
        (e.g. " morgan "). There is no partial matching.

        Args:
            name (str): member name or display name of a fingerprint type

        Returns:
            FingerprintType | None: the matching type or `None` if there is none
        """
        if name is None:
            return None
        try:
            return cls[name]
        except KeyError:
            pass
        name = name.strip().upper()
        for fp_type in cls:
            if name == fp_type.value.upper():
                return fp_type
        return None

    @classmethod
    def fromSettings(cls, settings: FingerprintSettings) -> "FingerprintType":
        """Return the fingerprint type the settings were created for.

        Args:
            settings (FingerprintSettings): fingerprint settings

        Returns:
            FingerprintType: the owning fingerprint type

        Raises:
            ValueError: if the settings name no known fingerprint type
        """
        fp_type = cls.parseString(settings.name)
        if fp_type is None:
            raise ValueError(f"Unknown fingerprint type: {settings.name!r}")
        return fp_type

    @staticmethod
    def isCompatible(
        fps1: FingerprintSettings | None, fps2: FingerprintSettings | None
    ) -> bool:
        """Determine if two fingerprint settings are compatible, i.e. if an index
        built with one of them can be queried with fingerprints of the other.

        Settings are compatible if both are set and all their fields are equal,
        the fingerprint type name included.

        Args:
            fps1 (FingerprintSettings): first settings, can be `None`
            fps2 (FingerprintSettings): second settings, can be `None`

        Returns:
            bool: `True` if both settings are compatible
        """
        if fps1 is None or fps2 is None:
            return False
        return fps1 == fps2


_FAMILIES: dict[FingerprintType, FingerprintFamily] = {
    FingerprintType.MORGAN: MorganFamily(),
    FingerprintType.FEATMORGAN: FeatMorganFamily(),
    FingerprintType.ATOMPAIR: AtomPairFamily(),
    FingerprintType.TORSION: TorsionFamily(),
    FingerprintType.RDKIT: RDKitFamily(),
    FingerprintType.AVALON: AvalonFamily(),
    FingerprintType.LAYERED: LayeredFamily(),
    FingerprintType.MACCS: MACCSFamily(),
    FingerprintType.PATTERN: PatternFamily(),
}


def _all_subclasses(cls: type) -> list[type]:
    subclasses = []
    for subclass in cls.__subclasses__():
        subclasses.append(subclass)
        subclasses.extend(_all_subclasses(subclass))
    return subclasses


def check_families():
    """Check that fingerprint types and their implementations match one to one.

    Raises:
        TypeError:
            if a type has no implementation, an implementation is registered under
            another display name or a concrete `FingerprintFamily` subclass is not
            registered for any type
    """
    for fp_type in FingerprintType:
        if fp_type not in _FAMILIES:
            raise TypeError(f"No implementation for fingerprint type {fp_type.name}.")
        if _FAMILIES[fp_type].displayName != fp_type.value:
            raise TypeError(
                f"Implementation of {fp_type.name} is registered under the display "
                f"name '{_FAMILIES[fp_type].displayName}'."
            )
    registered = {type(family) for family in _FAMILIES.values()}
    for family_cls in _all_subclasses(FingerprintFamily):
        if not inspect.isabstract(family_cls) and family_cls not in registered:
            raise TypeError(
                f"{family_cls.__name__} is not registered for any fingerprint type."
            )


check_families()
