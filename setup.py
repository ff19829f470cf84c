#!/usr/bin/env python3
"""
Reads configuration from pyproject.toml and sets up project accordingly.
"""

from setuptools import setup, find_packages
import toml

with open("pyproject.toml", "r") as f:
    pyproject_data = toml.load(f)

project_config = pyproject_data.get("project", {})

setup(
    name=project_config.get("name"),
    version=project_config.get("version"),
    description=project_config.get("description", "Obsidian Sentinel connector installer for Azure Government"),
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    package_data={"sentinel_connector_install": ["templates/*.json"]},
    python_requires=project_config.get("requires-python"),
    install_requires=project_config.get("dependencies", []),
    extras_require=project_config.get("optional-dependencies", {}),
    entry_points={
        "console_scripts": [
            "obsidian-sentinel-install=sentinel_connector_install.main:main",
        ],
    },
)
