from rdkit import rdBase

from .about import VERSION as __version__

rdBase.DisableLog("rdApp.error")
rdBase.DisableLog("rdApp.info")
rdBase.DisableLog("rdApp.warning")

VERSION = __version__
