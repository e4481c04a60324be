"""Catalog of the fingerprint types supported for structure search.

Typical use when creating an index or a query::

    settings = FingerprintType.MORGAN.getSpecification(numBits=2048, radius=2)
    FingerprintType.MORGAN.validateSpecification(settings)
    fp = FingerprintType.MORGAN.calculate(mol, settings)
"""

from .calculator import FingerprintCalculator
from .exceptions import InvalidFingerprintSettingsError
from .families import FingerprintFamily
from .settings import UNAVAILABLE, FingerprintParameters, FingerprintSettings
from .types import FingerprintType
