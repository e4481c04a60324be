import logging
import os
import tempfile

from .serialization import JSONSerializable
from .testing.base import MolSearchTestCase
from .. import logs
from ..fingerprints import (
    FingerprintCalculator,
    FingerprintParameters,
    FingerprintSettings,
    FingerprintType,
)


class SerializableObject(JSONSerializable):
    _notJSON = ["cache"]

    def __init__(self, value):
        self.value = value
        self.cache = {"computed": value * 2}


class TestJSONSerializable(MolSearchTestCase):
    """Test the JSON serialization mix-in."""

    def testRoundTrip(self):
        obj = SerializableObject(21)
        restored = SerializableObject.fromJSON(obj.toJSON())
        self.assertEqual(restored.value, 21)
        self.assertFalse(hasattr(restored, "cache"))

    def testFile(self):
        obj = SerializableObject([1, 2, 3])
        with tempfile.TemporaryDirectory() as tmp_dir:
            path = obj.toFile(os.path.join(tmp_dir, "obj.json"))
            self.assertTrue(os.path.isabs(path))
            self.assertEqual(SerializableObject.fromFile(path).value, [1, 2, 3])

    def testWrongClass(self):
        settings = FingerprintType.PATTERN.getSpecification(
            FingerprintParameters(numBits=64)
        )
        with self.assertRaises(ValueError):
            SerializableObject.fromJSON(settings.toJSON())
        with self.assertRaises(ValueError):
            FingerprintSettings.fromJSON(SerializableObject(1).toJSON())


class TestLogging(MolSearchTestCase):
    """Test the package logger."""

    def testLogger(self):
        self.assertEqual(logs.logger.name, "molsearch")

    def testSetLogger(self):
        original = logs.logger
        custom = logging.getLogger("molsearch.custom")
        try:
            logs.setLogger(custom)
            self.assertIs(logs.logger, custom)
        finally:
            logs.setLogger(original)

    def testSetLoggerUsedByCalculations(self):
        """Records of modules that use the package logger reach a replaced logger."""
        original = logs.logger
        custom = logging.getLogger("molsearch.custom")
        settings = FingerprintType.MORGAN.getSpecification(numBits=64, radius=2)
        try:
            logs.setLogger(custom)
            with self.assertLogs("molsearch.custom", level="DEBUG") as cm:
                FingerprintType.MORGAN.calculate(self.getMols()[0], settings)
                FingerprintCalculator(settings).getFingerprints(["CCO"])
            self.assertTrue(
                any("Calculating fingerprint" in msg for msg in cm.output)
            )
            self.assertTrue(
                any("Calculated 1 fingerprints" in msg for msg in cm.output)
            )
        finally:
            logs.setLogger(original)
