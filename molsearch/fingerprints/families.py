"""Implementations of the supported fingerprint types.

Each fingerprint type is implemented by a `FingerprintFamily` subclass that knows
which parameters it uses, how to validate them and how to calculate the fingerprint
with RDKit. Families are stateless and only accessed through `FingerprintType`.
"""

import threading
from abc import ABC, abstractmethod
from typing import ClassVar

from rdkit.Avalon import pyAvalonTools
from rdkit.Chem import MACCSkeys, Mol, rdFingerprintGenerator, rdmolops
from rdkit.DataStructs import ExplicitBitVect

from .exceptions import InvalidFingerprintSettingsError
from .settings import FingerprintParameters, FingerprintSettings

DEFAULT_ATOM_PAIR_MIN_PATH = 1
# legacy atom pair default of the first index versions
DEFAULT_ATOM_PAIR_MAX_PATH = 30
DEFAULT_TORSION_PATH_LENGTH = 4
MACCS_NUM_BITS = 166
RDKIT_BITS_PER_FEATURE = 2


def _require_positive(value: int | None, label: str):
    if value is None or value <= 0:
        raise InvalidFingerprintSettingsError(f"{label} must be a positive number > 0.")


def _optional_positive(value: int | None, label: str):
    if value is not None and value <= 0:
        raise InvalidFingerprintSettingsError(f"{label} must be a positive number > 0.")


def _validate_paths(settings: FingerprintSettings):
    _require_positive(settings.minPath, "Minimal path")
    _require_positive(settings.maxPath, "Maximal path")
    if settings.maxPath < settings.minPath:
        raise InvalidFingerprintSettingsError(
            "Maximal path must be greater than or equal to minimal path."
        )


class FingerprintFamily(ABC):
    """Base class of all fingerprint type implementations.

    Attributes:
        displayName (str):
            name of the fingerprint type as persisted in index metadata, must not
            change for existing types
        relevantParameters (tuple[str, ...]):
            names of the `FingerprintParameters` fields this type uses
    """

    displayName: ClassVar[str]
    relevantParameters: ClassVar[tuple[str, ...]]

    def getSpecification(self, params: FingerprintParameters) -> FingerprintSettings:
        """Create the settings for this fingerprint type. Only the relevant
        parameters are copied from the bundle, all others are `UNAVAILABLE`.
        No validation takes place.

        Args:
            params (FingerprintParameters): bundle with all parameter values

        Returns:
            FingerprintSettings: normalized settings, never `None`
        """
        return FingerprintSettings(
            name=self.displayName,
            **{key: getattr(params, key) for key in self.relevantParameters},
        )

    def validateSpecification(self, settings: FingerprintSettings | None):
        """Validate settings for this fingerprint type. Missing settings are
        reported before any parameter rule is checked.

        Args:
            settings (FingerprintSettings): settings to validate

        Raises:
            InvalidFingerprintSettingsError: if the settings cannot be used
        """
        if settings is None:
            raise InvalidFingerprintSettingsError("No fingerprint settings available.")
        _require_positive(settings.numBits, "Number of bits")
        self.validateParameters(settings)

    @abstractmethod
    def validateParameters(self, settings: FingerprintSettings):
        """Check the rules specific to this fingerprint type.

        Args:
            settings (FingerprintSettings): settings to validate, never `None`

        Raises:
            InvalidFingerprintSettingsError: if a rule is violated
        """

    @abstractmethod
    def calculate(self, mol: Mol, settings: FingerprintSettings) -> ExplicitBitVect:
        """Calculate the fingerprint of a molecule. The settings must have been
        validated with `validateSpecification` before, they are not checked again.

        Args:
            mol (Mol): molecule to calculate the fingerprint for
            settings (FingerprintSettings): validated settings of this type

        Returns:
            ExplicitBitVect: the fingerprint
        """

    def getLength(self, settings: FingerprintSettings) -> int:
        """Return the length of the bit vectors calculated with the given settings."""
        return settings.numBits

    def __str__(self):
        return self.displayName


class MorganFamily(FingerprintFamily):
    """Circular Morgan fingerprint (ECFP-like)."""

    displayName = "Morgan"
    relevantParameters = ("numBits", "radius")

    def validateParameters(self, settings: FingerprintSettings):
        _require_positive(settings.radius, "Radius")

    def calculate(self, mol: Mol, settings: FingerprintSettings) -> ExplicitBitVect:
        generator = rdFingerprintGenerator.GetMorganGenerator(
            radius=settings.radius, fpSize=settings.numBits
        )
        return generator.GetFingerprint(mol)


class FeatMorganFamily(MorganFamily):
    """Circular Morgan fingerprint on pharmacophoric feature invariants
    (FCFP-like)."""

    displayName = "FeatMorgan"

    def calculate(self, mol: Mol, settings: FingerprintSettings) -> ExplicitBitVect:
        generator = rdFingerprintGenerator.GetMorganGenerator(
            radius=settings.radius,
            fpSize=settings.numBits,
            atomInvariantsGenerator=rdFingerprintGenerator.GetMorganFeatureAtomInvGen(),
        )
        return generator.GetFingerprint(mol)


class AtomPairFamily(FingerprintFamily):
    """Hashed atom pair fingerprint.

    The path bounds are optional. If they are not set, the defaults of the first
    index versions are used (1 and 30), so that existing indexes stay valid.
    """

    displayName = "AtomPair"
    relevantParameters = ("atomPairMinPath", "atomPairMaxPath", "numBits")

    def validateParameters(self, settings: FingerprintSettings):
        _optional_positive(settings.atomPairMinPath, "AtomPair minimal path")
        _optional_positive(settings.atomPairMaxPath, "AtomPair maximal path")
        if (
            settings.isAvailable(settings.atomPairMinPath)
            and settings.isAvailable(settings.atomPairMaxPath)
            and settings.atomPairMaxPath < settings.atomPairMinPath
        ):
            raise InvalidFingerprintSettingsError(
                "AtomPair maximal path must be greater than or equal to "
                "AtomPair minimal path."
            )

    def calculate(self, mol: Mol, settings: FingerprintSettings) -> ExplicitBitVect:
        min_path = settings.atomPairMinPath
        max_path = settings.atomPairMaxPath
        if not settings.isAvailable(min_path):
            min_path = DEFAULT_ATOM_PAIR_MIN_PATH
        if not settings.isAvailable(max_path):
            max_path = DEFAULT_ATOM_PAIR_MAX_PATH
        generator = rdFingerprintGenerator.GetAtomPairGenerator(
            minDistance=min_path,
            maxDistance=max_path,
            fpSize=settings.numBits,
            countSimulation=True,
        )
        return generator.GetFingerprint(mol)


class TorsionFamily(FingerprintFamily):
    """Hashed topological torsion fingerprint. Uses torsions of 4 atoms if no path
    length is set."""

    displayName = "Torsion"
    relevantParameters = ("torsionPathLength", "numBits")

    def validateParameters(self, settings: FingerprintSettings):
        _optional_positive(settings.torsionPathLength, "Torsion path length")

    def calculate(self, mol: Mol, settings: FingerprintSettings) -> ExplicitBitVect:
        path_length = settings.torsionPathLength
        if not settings.isAvailable(path_length):
            path_length = DEFAULT_TORSION_PATH_LENGTH
        generator = rdFingerprintGenerator.GetTopologicalTorsionGenerator(
            torsionAtomCount=path_length,
            fpSize=settings.numBits,
            countSimulation=True,
        )
        return generator.GetFingerprint(mol)


class RDKitFamily(FingerprintFamily):
    """RDKit path based (Daylight-like) fingerprint."""

    displayName = "RDKit"
    relevantParameters = ("minPath", "maxPath", "numBits")

    def validateParameters(self, settings: FingerprintSettings):
        _validate_paths(settings)

    def calculate(self, mol: Mol, settings: FingerprintSettings) -> ExplicitBitVect:
        generator = rdFingerprintGenerator.GetRDKitFPGenerator(
            minPath=settings.minPath,
            maxPath=settings.maxPath,
            fpSize=settings.numBits,
            numBitsPerFeature=RDKIT_BITS_PER_FEATURE,
        )
        return generator.GetFingerprint(mol)


class AvalonFamily(FingerprintFamily):
    """Avalon toolkit fingerprint.

    Calls into the Avalon toolkit are not reentrant and have crashed the process
    when made from several threads at once, so all calculations of this type are
    serialized through `lock`. Other fingerprint types never wait for it.

    Attributes:
        lock (threading.Lock): process wide lock around Avalon calculations
    """

    displayName = "Avalon"
    relevantParameters = ("numBits", "avalonQueryFlag", "avalonBitFlags")
    lock: ClassVar[threading.Lock] = threading.Lock()

    def validateParameters(self, settings: FingerprintSettings):
        pass

    def calculate(self, mol: Mol, settings: FingerprintSettings) -> ExplicitBitVect:
        kwargs = {}
        if settings.isAvailable(settings.avalonBitFlags):
            kwargs["bitFlags"] = settings.avalonBitFlags
        with self.lock:
            return pyAvalonTools.GetAvalonFP(
                mol,
                nBits=settings.numBits,
                isQuery=settings.avalonQueryFlag == 1,
                resetVect=False,
                **kwargs,
            )


class LayeredFamily(FingerprintFamily):
    """RDKit layered fingerprint, used for substructure screening."""

    displayName = "Layered"
    relevantParameters = ("minPath", "maxPath", "numBits", "layerFlags")

    def validateParameters(self, settings: FingerprintSettings):
        _validate_paths(settings)
        _require_positive(settings.layerFlags, "Layer flags")

    def calculate(self, mol: Mol, settings: FingerprintSettings) -> ExplicitBitVect:
        return rdmolops.LayeredFingerprint(
            mol,
            layerFlags=settings.layerFlags,
            minPath=settings.minPath,
            maxPath=settings.maxPath,
            fpSize=settings.numBits,
        )


class MACCSFamily(FingerprintFamily):
    """MACCS structural keys. The number of bits is fixed by the key set and
    cannot be configured."""

    displayName = "MACCS"
    relevantParameters = ("numBits",)

    def getSpecification(self, params: FingerprintParameters) -> FingerprintSettings:
        return FingerprintSettings(name=self.displayName, numBits=MACCS_NUM_BITS)

    def getLength(self, settings: FingerprintSettings) -> int:
        # RDKit reserves bit 0, keys are numbered from 1
        return MACCS_NUM_BITS + 1

    def validateParameters(self, settings: FingerprintSettings):
        pass

    def calculate(self, mol: Mol, settings: FingerprintSettings) -> ExplicitBitVect:
        return MACCSkeys.GenMACCSKeys(mol)


class PatternFamily(FingerprintFamily):
    """RDKit pattern fingerprint, used for substructure screening."""

    displayName = "Pattern"
    relevantParameters = ("numBits",)

    def validateParameters(self, settings: FingerprintSettings):
        pass

    def calculate(self, mol: Mol, settings: FingerprintSettings) -> ExplicitBitVect:
        return rdmolops.PatternFingerprint(mol, fpSize=settings.numBits)
