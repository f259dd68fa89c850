"""
Setup script for Active Directory runbooks.
"""

from setuptools import setup, find_packages

setup(
    name="active-directory-runbooks",
    version="0.1.0",
    description="Single-operation Active Directory runbooks with CLI and MCP surfaces",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.10",
    install_requires=[
        "ldap3>=2.9",
        "pydantic>=2.0",
        "mcp>=1.0,<2",
        "pywinrm>=0.4.3",
        "requests>=2.25",
        "typer>=0.9",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "ad-runbook=active_directory_runbooks.cli:app",
            "ad-runbooks-mcp=active_directory_runbooks.server:main",
        ],
    },
)
