import logging
import os
from unittest import TestCase

from rdkit import Chem

from ...logs import logger, setLogger


class MolSearchTestCase(TestCase):
    """Base class of the package test cases.

    Attributes:
        nCPU (int): number of CPUs available for concurrency tests
        smiles (list[str]): a small set of drug-like test molecules
    """

    smiles = [
        "CC(=O)Oc1ccccc1C(=O)O",
        "CN1C=NC2=C1C(=O)N(C(=O)N2C)C",
        "CC(C)Cc1ccc(cc1)C(C)C(=O)O",
        "c1ccc2c(c1)Cc1ccccc12",
        "OCC1OC(O)C(O)C(O)C1O",
    ]

    def setUp(self):
        self.nCPU = os.cpu_count()
        logger.setLevel(logging.DEBUG)
        setLogger(logger)

    def getMols(self) -> list[Chem.Mol]:
        """Parse the test SMILES into RDKit molecules."""
        mols = [Chem.MolFromSmiles(smi) for smi in self.smiles]
        for smi, mol in zip(self.smiles, mols):
            self.assertIsNotNone(mol, f"Invalid test SMILES: {smi}")
        return mols
