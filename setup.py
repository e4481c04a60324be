"""
setup.py

Packaging of the molsearch fingerprint catalog.
"""

import os

from setuptools import find_packages, setup

main_ns = {}
ver_path = os.path.join(os.path.dirname(os.path.abspath(__file__)), "molsearch", "about.py")
with open(ver_path) as ver_file:
    exec(ver_file.read(), main_ns)

setup(
    name="molsearch",
    version=main_ns["VERSION"],
    description="Fingerprint type catalog for chemical structure search indexes",
    packages=find_packages(include=["molsearch", "molsearch.*"]),
    python_requires=">=3.10",
    install_requires=[
        "rdkit",
        "numpy",
        "pandas",
        "jsonpickle",
    ],
    extras_require={
        "test": [
            "pytest",
            "parameterized",
        ],
    },
)
