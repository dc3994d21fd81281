"""Setup configuration for browser-conformance package."""

from setuptools import setup, find_packages

setup(
    name="browser-conformance",
    version="0.1.0",
    description="Browser conformance harness across engines, viewports and network profiles",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.10",
    entry_points={
        "console_scripts": [
            "browser-conformance=browser_conformance.cli:main",
        ],
    },
    install_requires=[
        "pydantic>=2.0.0",
        "python-dotenv>=1.0.0",
        "PyYAML>=6.0",
        "playwright>=1.40.0",
        "click>=8.1.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.1.0",
            "pytest-mock>=3.11.0",
            "ruff>=0.1.0",
            "mypy>=1.5.0",
            "black>=23.0.0",
        ],
    },
)
