import gc
import os
import tempfile
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from unittest.mock import patch

from parameterized import parameterized
from rdkit import Chem
from rdkit.Avalon import pyAvalonTools

from .calculator import FingerprintCalculator
from .exceptions import InvalidFingerprintSettingsError
from .families import AvalonFamily, MorganFamily
from .settings import (
    PARAMETER_NAMES,
    UNAVAILABLE,
    FingerprintParameters,
    FingerprintSettings,
)
from .types import FingerprintType, check_families
from ..utils.testing.base import MolSearchTestCase

FULL_BUNDLE = FingerprintParameters(
    torsionPathLength=5,
    minPath=2,
    maxPath=6,
    atomPairMinPath=2,
    atomPairMaxPath=10,
    numBits=1024,
    radius=3,
    layerFlags=7,
    avalonQueryFlag=1,
    avalonBitFlags=15761407,
)

EXPECTED_FIELDS = {
    FingerprintType.MORGAN: {"numBits", "radius"},
    FingerprintType.FEATMORGAN: {"numBits", "radius"},
    FingerprintType.ATOMPAIR: {"atomPairMinPath", "atomPairMaxPath", "numBits"},
    FingerprintType.TORSION: {"torsionPathLength", "numBits"},
    FingerprintType.RDKIT: {"minPath", "maxPath", "numBits"},
    FingerprintType.AVALON: {"numBits", "avalonQueryFlag", "avalonBitFlags"},
    FingerprintType.LAYERED: {"minPath", "maxPath", "numBits", "layerFlags"},
    FingerprintType.MACCS: {"numBits"},
    FingerprintType.PATTERN: {"numBits"},
}

ALL_TYPES = [(fp_type,) for fp_type in FingerprintType]


class TestSpecification(MolSearchTestCase):
    """Test creation of fingerprint settings from a parameter bundle."""

    @parameterized.expand(ALL_TYPES)
    def testIrrelevantFieldsUnavailable(self, fp_type):
        """Test that only the parameters used by a type are kept."""
        settings = fp_type.getSpecification(FULL_BUNDLE)
        self.assertEqual(settings.name, fp_type.value)
        self.assertEqual(set(settings.availableFields()), EXPECTED_FIELDS[fp_type])
        for key in PARAMETER_NAMES:
            if key not in EXPECTED_FIELDS[fp_type]:
                self.assertIs(getattr(settings, key), UNAVAILABLE)

    @parameterized.expand(ALL_TYPES)
    def testIrrelevantDifferencesIgnored(self, fp_type):
        """Test that bundles differing only in unused parameters give equal
        settings."""
        other = FingerprintParameters(
            **{
                key: getattr(FULL_BUNDLE, key) if key in EXPECTED_FIELDS[fp_type]
                else 99
                for key in PARAMETER_NAMES
            }
        )
        self.assertEqual(
            fp_type.getSpecification(FULL_BUNDLE), fp_type.getSpecification(other)
        )

    def testRelevantValuesCopied(self):
        settings = FingerprintType.LAYERED.getSpecification(FULL_BUNDLE)
        self.assertEqual(settings.minPath, 2)
        self.assertEqual(settings.maxPath, 6)
        self.assertEqual(settings.numBits, 1024)
        self.assertEqual(settings.layerFlags, 7)

    def testMACCSFixedLength(self):
        """MACCS keys always have 166 bits, whatever was requested."""
        settings = FingerprintType.MACCS.getSpecification(numBits=2048)
        self.assertEqual(settings.numBits, 166)

    def testKeywordArguments(self):
        self.assertEqual(
            FingerprintType.MORGAN.getSpecification(numBits=2048, radius=2),
            FingerprintType.MORGAN.getSpecification(
                FingerprintParameters(numBits=2048, radius=2)
            ),
        )
        with self.assertRaises(ValueError):
            FingerprintType.MORGAN.getSpecification(FULL_BUNDLE, radius=2)

    def testNoValidationOnCreation(self):
        settings = FingerprintType.RDKIT.getSpecification(minPath=-5)
        self.assertEqual(settings.minPath, -5)
        self.assertIsNone(settings.numBits)

    def testImmutable(self):
        settings = FingerprintType.MORGAN.getSpecification(numBits=2048, radius=2)
        with self.assertRaises(AttributeError):
            settings.radius = 3


class TestValidation(MolSearchTestCase):
    """Test the validation rules of the fingerprint types."""

    @parameterized.expand(ALL_TYPES)
    def testMissingSettings(self, fp_type):
        with self.assertRaises(InvalidFingerprintSettingsError):
            fp_type.validateSpecification(None)

    @parameterized.expand(ALL_TYPES)
    def testValidBundle(self, fp_type):
        fp_type.validateSpecification(fp_type.getSpecification(FULL_BUNDLE))

    @parameterized.expand(
        [(fp_type,) for fp_type in FingerprintType if fp_type != FingerprintType.MACCS]
    )
    def testNumBitsRequired(self, fp_type):
        """Every type requires a positive number of bits."""
        for num_bits in (0, -3, None):
            bundle = replace(FULL_BUNDLE, numBits=num_bits)
            with self.assertRaisesRegex(
                InvalidFingerprintSettingsError, "Number of bits"
            ):
                fp_type.validateSpecification(fp_type.getSpecification(bundle))

    @parameterized.expand([(FingerprintType.MORGAN,), (FingerprintType.FEATMORGAN,)])
    def testRadius(self, fp_type):
        fp_type.validateSpecification(fp_type.getSpecification(numBits=1, radius=1))
        with self.assertRaisesRegex(InvalidFingerprintSettingsError, "Radius"):
            fp_type.validateSpecification(fp_type.getSpecification(numBits=1, radius=0))
        with self.assertRaisesRegex(InvalidFingerprintSettingsError, "Radius"):
            fp_type.validateSpecification(fp_type.getSpecification(numBits=1))

    def testMorganBitsBeforeRadius(self):
        """The first violated rule is reported."""
        settings = FingerprintType.MORGAN.getSpecification(numBits=0, radius=0)
        with self.assertRaisesRegex(InvalidFingerprintSettingsError, "Number of bits"):
            FingerprintType.MORGAN.validateSpecification(settings)

    @parameterized.expand(
        [
            (5, 3, False),
            (1, 1, True),
            (None, None, True),
            (3, None, True),
            (None, 3, True),
            (0, 5, False),
            (2, 0, False),
            (2, 30, True),
        ]
    )
    def testAtomPairPaths(self, min_path, max_path, valid):
        settings = FingerprintType.ATOMPAIR.getSpecification(
            numBits=64, atomPairMinPath=min_path, atomPairMaxPath=max_path
        )
        if valid:
            FingerprintType.ATOMPAIR.validateSpecification(settings)
        else:
            with self.assertRaisesRegex(InvalidFingerprintSettingsError, "AtomPair"):
                FingerprintType.ATOMPAIR.validateSpecification(settings)

    @parameterized.expand([(None, True), (4, True), (1, True), (0, False), (-2, False)])
    def testTorsionPathLength(self, path_length, valid):
        settings = FingerprintType.TORSION.getSpecification(
            numBits=64, torsionPathLength=path_length
        )
        if valid:
            FingerprintType.TORSION.validateSpecification(settings)
        else:
            with self.assertRaisesRegex(InvalidFingerprintSettingsError, "Torsion"):
                FingerprintType.TORSION.validateSpecification(settings)

    @parameterized.expand(
        [
            (FingerprintType.RDKIT, None, 7, "Minimal path"),
            (FingerprintType.RDKIT, 1, None, "Maximal path"),
            (FingerprintType.RDKIT, 0, 7, "Minimal path"),
            (FingerprintType.RDKIT, 1, 0, "Maximal path"),
            (FingerprintType.RDKIT, 5, 3, "greater than or equal"),
            (FingerprintType.LAYERED, None, 7, "Minimal path"),
            (FingerprintType.LAYERED, 5, 3, "greater than or equal"),
        ]
    )
    def testPathRules(self, fp_type, min_path, max_path, message):
        """Path based types require both path bounds to be set."""
        settings = fp_type.getSpecification(
            numBits=64, minPath=min_path, maxPath=max_path, layerFlags=1
        )
        with self.assertRaisesRegex(InvalidFingerprintSettingsError, message):
            fp_type.validateSpecification(settings)

    def testUnsetPathsOnlyLegalForAtomPair(self):
        FingerprintType.ATOMPAIR.validateSpecification(
            FingerprintType.ATOMPAIR.getSpecification(numBits=64)
        )
        with self.assertRaises(InvalidFingerprintSettingsError):
            FingerprintType.RDKIT.validateSpecification(
                FingerprintType.RDKIT.getSpecification(numBits=64, maxPath=7)
            )

    def testLayerFlags(self):
        settings = FingerprintType.LAYERED.getSpecification(
            numBits=64, minPath=1, maxPath=7, layerFlags=0
        )
        with self.assertRaisesRegex(InvalidFingerprintSettingsError, "Layer flags"):
            FingerprintType.LAYERED.validateSpecification(settings)

    def testAvalonFlagsUnchecked(self):
        FingerprintType.AVALON.validateSpecification(
            FingerprintType.AVALON.getSpecification(
                numBits=512, avalonQueryFlag=-7, avalonBitFlags=0
            )
        )

    def testValidationDoesNotChangeSettings(self):
        settings = FingerprintType.ATOMPAIR.getSpecification(numBits=64)
        before = settings.toDict()
        FingerprintType.ATOMPAIR.validateSpecification(settings)
        self.assertEqual(settings.toDict(), before)


class TestCompatibility(MolSearchTestCase):
    """Test the compatibility check of fingerprint settings."""

    @parameterized.expand(ALL_TYPES)
    def testReflexive(self, fp_type):
        settings = fp_type.getSpecification(FULL_BUNDLE)
        self.assertTrue(FingerprintType.isCompatible(settings, settings))
        self.assertTrue(
            FingerprintType.isCompatible(settings, fp_type.getSpecification(FULL_BUNDLE))
        )

    def testSymmetric(self):
        a = FingerprintType.MORGAN.getSpecification(numBits=2048, radius=2)
        b = FingerprintType.MORGAN.getSpecification(numBits=2048, radius=3)
        c = FingerprintType.MORGAN.getSpecification(numBits=2048, radius=2)
        for x, y in ((a, b), (a, c), (b, c)):
            self.assertEqual(
                FingerprintType.isCompatible(x, y), FingerprintType.isCompatible(y, x)
            )
        self.assertFalse(FingerprintType.isCompatible(a, b))
        self.assertTrue(FingerprintType.isCompatible(a, c))

    def testDifferentTypes(self):
        """Settings of different types are never compatible."""
        morgan = FingerprintType.MORGAN.getSpecification(numBits=2048, radius=2)
        feat_morgan = FingerprintType.FEATMORGAN.getSpecification(
            numBits=2048, radius=2
        )
        self.assertEqual(morgan.availableFields(), feat_morgan.availableFields())
        self.assertFalse(FingerprintType.isCompatible(morgan, feat_morgan))

    def testUnavailableVersusDefault(self):
        """An unset value differs from its calculation default."""
        unset = FingerprintType.TORSION.getSpecification(numBits=64)
        default = FingerprintType.TORSION.getSpecification(
            numBits=64, torsionPathLength=4
        )
        self.assertFalse(FingerprintType.isCompatible(unset, default))

    def testMissing(self):
        settings = FingerprintType.PATTERN.getSpecification(numBits=64)
        self.assertFalse(FingerprintType.isCompatible(None, settings))
        self.assertFalse(FingerprintType.isCompatible(settings, None))
        self.assertFalse(FingerprintType.isCompatible(None, None))


class TestFamilyRegistry(MolSearchTestCase):
    """Test that fingerprint types and implementations stay in sync."""

    def testUnregisteredFamily(self):
        check_families()

        class ECFPCountFamily(MorganFamily):
            displayName = "ECFPCount"

        try:
            with self.assertRaisesRegex(TypeError, "ECFPCountFamily"):
                check_families()
        finally:
            del ECFPCountFamily
            gc.collect()
        check_families()


class TestParsing(MolSearchTestCase):
    """Test the resolution of fingerprint types from strings."""

    @parameterized.expand(
        [("MORGAN",), ("Morgan",), ("morgan",), ("  morgan  ",), ("mOrGaN",)]
    )
    def testMorgan(self, name):
        self.assertIs(FingerprintType.parseString(name), FingerprintType.MORGAN)

    @parameterized.expand(ALL_TYPES)
    def testDisplayNameRoundTrip(self, fp_type):
        self.assertIs(FingerprintType.parseString(str(fp_type)), fp_type)
        self.assertIs(FingerprintType.parseString(fp_type.name), fp_type)

    @parameterized.expand([("not-a-family",), ("Morg",), ("",), (None,)])
    def testNoMatch(self, name):
        self.assertIsNone(FingerprintType.parseString(name))

    def testFromSettings(self):
        settings = FingerprintType.AVALON.getSpecification(numBits=512)
        self.assertIs(FingerprintType.fromSettings(settings), FingerprintType.AVALON)
        with self.assertRaises(ValueError):
            FingerprintType.fromSettings(FingerprintSettings(name="Unknown"))


class TestSerialization(MolSearchTestCase):
    """Test persistence of fingerprint settings as index metadata."""

    def testDict(self):
        settings = FingerprintType.ATOMPAIR.getSpecification(FULL_BUNDLE)
        restored = FingerprintSettings.fromDict(settings.toDict())
        self.assertEqual(settings, restored)
        self.assertTrue(FingerprintType.isCompatible(settings, restored))

    def testLegacyUnavailable(self):
        """Older indexes store unavailable parameters as -1."""
        data = {key: -1 for key in PARAMETER_NAMES}
        data.update(name="Morgan", numBits=2048, radius=2)
        self.assertEqual(
            FingerprintSettings.fromDict(data),
            FingerprintType.MORGAN.getSpecification(numBits=2048, radius=2),
        )
        bundle = FingerprintParameters.fromDict({"radius": -1, "numBits": 512})
        self.assertIsNone(bundle.radius)
        self.assertEqual(bundle.numBits, 512)

    def testInvalidDict(self):
        with self.assertRaises(ValueError):
            FingerprintSettings.fromDict({"numBits": 64})
        with self.assertRaises(ValueError):
            FingerprintSettings.fromDict({"name": "Morgan", "size": 64})
        with self.assertRaises(ValueError):
            FingerprintParameters.fromDict({"radius": 1.5})
        with self.assertRaises(ValueError):
            FingerprintParameters.fromDict({"radius": True})
        with self.assertRaises(ValueError):
            FingerprintParameters.fromDict({"radius": float("inf")})
        with self.assertRaises(ValueError):
            FingerprintSettings.fromDict({"name": "Morgan", "numBits": [64]})

    def testJSON(self):
        settings = FingerprintType.LAYERED.getSpecification(FULL_BUNDLE)
        restored = FingerprintSettings.fromJSON(settings.toJSON())
        self.assertEqual(settings, restored)
        self.assertEqual(hash(settings), hash(restored))
        with tempfile.TemporaryDirectory() as tmp_dir:
            path = settings.toFile(os.path.join(tmp_dir, "settings.json"))
            self.assertEqual(FingerprintSettings.fromFile(path), settings)


class TestCalculation(MolSearchTestCase):
    """Test fingerprint calculation for all fingerprint types."""

    @parameterized.expand(ALL_TYPES)
    def testCalculate(self, fp_type):
        settings = fp_type.getSpecification(FULL_BUNDLE)
        fp_type.validateSpecification(settings)
        for mol in self.getMols():
            fp = fp_type.calculate(mol, settings)
            self.assertEqual(fp.GetNumBits(), fp_type.getLength(settings))
            self.assertGreater(fp.GetNumOnBits(), 0)

    def testMorganDeterministic(self):
        """Identical molecules give identical fingerprints."""
        settings = FingerprintType.MORGAN.getSpecification(numBits=2048, radius=2)
        FingerprintType.MORGAN.validateSpecification(settings)
        fp1 = FingerprintType.MORGAN.calculate(Chem.MolFromSmiles("OCC"), settings)
        fp2 = FingerprintType.MORGAN.calculate(Chem.MolFromSmiles("C(O)C"), settings)
        self.assertEqual(fp1.GetNumBits(), 2048)
        self.assertEqual(list(fp1.GetOnBits()), list(fp2.GetOnBits()))

    def testFeatMorganDiffers(self):
        mol = Chem.MolFromSmiles(self.smiles[0])
        morgan = FingerprintType.MORGAN.calculate(
            mol, FingerprintType.MORGAN.getSpecification(numBits=2048, radius=2)
        )
        feat_morgan = FingerprintType.FEATMORGAN.calculate(
            mol, FingerprintType.FEATMORGAN.getSpecification(numBits=2048, radius=2)
        )
        self.assertNotEqual(list(morgan.GetOnBits()), list(feat_morgan.GetOnBits()))

    def testAtomPairDefaults(self):
        """Unset atom pair path bounds are calculated with 1 and 30."""
        mol = Chem.MolFromSmiles(self.smiles[2])
        unset = FingerprintType.ATOMPAIR.calculate(
            mol, FingerprintType.ATOMPAIR.getSpecification(numBits=1024)
        )
        explicit = FingerprintType.ATOMPAIR.calculate(
            mol,
            FingerprintType.ATOMPAIR.getSpecification(
                numBits=1024, atomPairMinPath=1, atomPairMaxPath=30
            ),
        )
        self.assertEqual(list(unset.GetOnBits()), list(explicit.GetOnBits()))

    def testTorsionDefault(self):
        """An unset torsion path length is calculated with 4."""
        mol = Chem.MolFromSmiles(self.smiles[2])
        unset = FingerprintType.TORSION.calculate(
            mol, FingerprintType.TORSION.getSpecification(numBits=1024)
        )
        explicit = FingerprintType.TORSION.calculate(
            mol,
            FingerprintType.TORSION.getSpecification(numBits=1024, torsionPathLength=4),
        )
        self.assertEqual(list(unset.GetOnBits()), list(explicit.GetOnBits()))

    def testAvalonSerialized(self):
        """Avalon calculations never run concurrently."""
        active = 0
        max_active = 0
        counter_lock = threading.Lock()
        original = pyAvalonTools.GetAvalonFP

        def tracking_fp(*args, **kwargs):
            nonlocal active, max_active
            with counter_lock:
                active += 1
                max_active = max(max_active, active)
            time.sleep(0.01)
            try:
                return original(*args, **kwargs)
            finally:
                with counter_lock:
                    active -= 1

        settings = FingerprintType.AVALON.getSpecification(numBits=512)
        mols = self.getMols() * 4
        with patch.object(pyAvalonTools, "GetAvalonFP", tracking_fp):
            with ThreadPoolExecutor(max_workers=max(2, min(8, self.nCPU))) as pool:
                fps = list(
                    pool.map(
                        lambda m: FingerprintType.AVALON.calculate(m, settings), mols
                    )
                )
        self.assertEqual(len(fps), len(mols))
        self.assertEqual(max_active, 1)
        self.assertFalse(AvalonFamily.lock.locked())

    def testKernelErrorsPropagate(self):
        settings = FingerprintType.MORGAN.getSpecification(numBits=64, radius=2)
        # RDKit rejects the call with Boost.Python.ArgumentError, a TypeError
        with self.assertRaises(TypeError) as cm:
            FingerprintType.MORGAN.calculate(None, settings)
        self.assertEqual(type(cm.exception).__name__, "ArgumentError")


class TestFingerprintCalculator(MolSearchTestCase):
    """Test the fingerprint calculator used by indexing and querying."""

    def setUp(self):
        super().setUp()
        self.settings = FingerprintType.MORGAN.getSpecification(numBits=256, radius=2)

    def testInvalidSettings(self):
        with self.assertRaises(InvalidFingerprintSettingsError):
            FingerprintCalculator(None)
        with self.assertRaises(InvalidFingerprintSettingsError):
            FingerprintCalculator(FingerprintType.MORGAN.getSpecification(numBits=256))
        with self.assertRaises(ValueError):
            FingerprintCalculator(FingerprintSettings(name="Unknown", numBits=256))

    def testDataFrame(self):
        calculator = FingerprintCalculator(self.settings)
        ids = [f"mol_{i}" for i in range(len(self.smiles))]
        df = calculator(self.smiles, ids=ids)
        self.assertEqual(df.shape, (len(self.smiles), 256))
        self.assertEqual(list(df.index), ids)
        self.assertEqual(df.columns[0], "Morgan_0")
        self.assertTrue(df.any().any())
        with self.assertRaises(ValueError):
            calculator(self.smiles, ids=ids[:2])

    def testSmilesAndMols(self):
        calculator = FingerprintCalculator(self.settings)
        from_smiles = calculator.getFingerprints(self.smiles)
        from_mols = calculator.getFingerprints(self.getMols())
        self.assertEqual(from_smiles.shape, (len(self.smiles), len(calculator)))
        self.assertTrue((from_smiles == from_mols).all())
        fp = calculator.getFingerprint(self.smiles[0])
        self.assertEqual(list(fp.GetOnBits()), list(from_smiles[0].nonzero()[0]))

    def testInvalidSmiles(self):
        calculator = FingerprintCalculator(self.settings)
        with self.assertRaises(ValueError):
            calculator.getFingerprints(["C1CC"])

    def testMACCSLength(self):
        calculator = FingerprintCalculator(FingerprintType.MACCS.getSpecification())
        self.assertEqual(calculator.getFingerprints(self.smiles).shape[1], 167)

    def testCompatibility(self):
        calculator = FingerprintCalculator(self.settings)
        self.assertTrue(calculator.isCompatible(self.settings))
        self.assertTrue(calculator.isCompatible(FingerprintCalculator(self.settings)))
        self.assertFalse(
            calculator.isCompatible(
                FingerprintType.MORGAN.getSpecification(numBits=512, radius=2)
            )
        )

    def testJSON(self):
        calculator = FingerprintCalculator(self.settings)
        restored = FingerprintCalculator.fromJSON(calculator.toJSON())
        self.assertIs(restored.fingerprintType, FingerprintType.MORGAN)
        self.assertEqual(restored.settings, self.settings)
        self.assertTrue(
            (
                restored.getFingerprints(self.smiles)
                == calculator.getFingerprints(self.smiles)
            ).all()
        )
