#!/usr/bin/env python

from setuptools import find_packages, setup

setup(
    name="enkidu",
    version="0.1.0",
    description="Incremental control-flow graph reconstruction from execution traces",
    packages=find_packages(exclude=("tests", "tests.*")),
    python_requires=">=3.7",
    install_requires=["cached-property", "sortedcontainers"],
    extras_require={
        "test": ["pytest"],
        "dev": [
            "autoflake",
            "black",
            "flake8",
            "flake8-mypy",
            "ipython",
            "isort",
            "pdbpp",
            "pytest",
        ],
    },
)
