from typing import Any, Generator, Iterable

import numpy as np
import pandas as pd
from rdkit import Chem, DataStructs
from rdkit.Chem import Mol
from rdkit.DataStructs import ExplicitBitVect

from .exceptions import InvalidFingerprintSettingsError
from .settings import FingerprintSettings
from .types import FingerprintType
from .. import logs
from ..utils.serialization import JSONSerializable


class FingerprintCalculator(JSONSerializable):
    """Calculates fingerprints of molecules for indexing or querying.

    The settings are validated once when the calculator is created, so every
    calculation afterwards uses valid settings.

    Attributes:
        settings (FingerprintSettings): settings of the calculated fingerprints
        fingerprintType (FingerprintType): type the settings belong to
    """

    def __init__(self, settings: FingerprintSettings):
        """Create a calculator and validate its settings.

        Args:
            settings (FingerprintSettings): fingerprint settings

        Raises:
            InvalidFingerprintSettingsError: if the settings are missing or invalid
            ValueError: if the settings name no known fingerprint type
        """
        if settings is None:
            raise InvalidFingerprintSettingsError("No fingerprint settings available.")
        self.fingerprintType = FingerprintType.fromSettings(settings)
        self.fingerprintType.validateSpecification(settings)
        self.settings = settings

    @staticmethod
    def iterMols(mols: Iterable[str | Mol]) -> Generator[Mol, None, None]:
        """Create a molecule generator from RDKit molecules or SMILES.

        Args:
            mols: molecules (SMILES `str` or RDKit Mol)

        Returns:
            generator of RDKit molecules

        Raises:
            ValueError: if a SMILES cannot be parsed
        """
        for mol in mols:
            if isinstance(mol, str):
                parsed = Chem.MolFromSmiles(mol)
                if parsed is None:
                    raise ValueError(f"Could not parse SMILES: {mol}")
                mol = parsed
            yield mol

    def getFingerprint(self, mol: str | Mol) -> ExplicitBitVect:
        """Calculate the fingerprint of a single molecule.

        Args:
            mol (str | Mol): SMILES or RDKit molecule

        Returns:
            ExplicitBitVect: the fingerprint
        """
        mol = next(self.iterMols([mol]))
        return self.fingerprintType.calculate(mol, self.settings)

    def getFingerprints(self, mols: Iterable[str | Mol]) -> np.ndarray:
        """Calculate the fingerprints of the input molecules as an array.

        Args:
            mols: list of SMILES or RDKit molecules

        Returns:
            (np.ndarray): fingerprint bits of shape (n_mols, n_bits)
        """
        convertFP = DataStructs.ConvertToNumpyArray
        mols = list(self.iterMols(mols))
        ret = np.zeros((len(mols), len(self)))
        for idx, mol in enumerate(mols):
            fp = self.fingerprintType.calculate(mol, self.settings)
            np_fp = np.zeros(len(fp))
            convertFP(fp, np_fp)
            ret[idx] = np_fp
        logs.logger.debug(f"Calculated {len(mols)} fingerprints: {self.settings}")
        return ret.astype(np.uint8)

    def __call__(
        self, mols: Iterable[str | Mol], ids: list[Any] | None = None
    ) -> pd.DataFrame:
        """Calculate the fingerprints of the input molecules as a data frame.

        Args:
            mols: list of SMILES or RDKit molecules
            ids: identifiers of the molecules used as index, positions by default

        Returns:
            (pd.DataFrame) fingerprint bits of shape (n_mols, n_bits)
        """
        values = self.getFingerprints(mols).astype(bool)
        if ids is None:
            ids = range(len(values))
        elif len(ids) != len(values):
            raise ValueError(
                f"Got {len(ids)} identifiers for {len(values)} molecules."
            )
        return pd.DataFrame(
            values,
            index=pd.Index(ids, name="ID"),
            columns=[f"{self.settings.name}_{i}" for i in range(len(self))],
        )

    def isCompatible(self, other: "FingerprintCalculator | FingerprintSettings") -> bool:
        """Check if fingerprints of this calculator can be compared with those
        of another calculator or settings."""
        if isinstance(other, FingerprintCalculator):
            other = other.settings
        return FingerprintType.isCompatible(self.settings, other)

    def __getstate__(self):
        o_dict = super().__getstate__()
        o_dict["fingerprintType"] = self.fingerprintType.name
        return o_dict

    def __setstate__(self, state):
        super().__setstate__(state)
        self.fingerprintType = FingerprintType[state["fingerprintType"]]

    def __len__(self):
        return self.fingerprintType.getLength(self.settings)

    def __str__(self):
        return f"FingerprintCalculator({self.settings})"
