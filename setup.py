#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Translation Orchestrator - package setup

Install for development:
    pip install -e ".[test]"
"""

from pathlib import Path

from setuptools import setup, find_packages

HERE = Path(__file__).parent


def read_requirements(name: str = "requirements.txt") -> list:
    """Pinned runtime dependencies, one per line, comments ignored."""
    path = HERE / name
    if not path.exists():
        return []
    lines = (line.split("#", 1)[0].strip() for line in path.read_text(encoding="utf-8").splitlines())
    return [line for line in lines if line]


readme = HERE / "README.md"

setup(
    name="translation-orchestrator",
    version="1.0.0",
    description="Multi-language translation jobs over DeepL with a learned correction memory and QA checks",
    long_description=readme.read_text(encoding="utf-8") if readme.exists() else "",
    long_description_content_type="text/markdown",
    python_requires=">=3.9",
    packages=find_packages(include=["api", "config", "core", "core.*", "providers"]),
    install_requires=read_requirements(),
    extras_require={
        "test": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.1.0",
        ],
        "dev": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.1.0",
            "black>=23.0.0",
            "flake8>=6.0.0",
            "mypy>=1.4.0",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Framework :: FastAPI",
        "Topic :: Text Processing :: Linguistic",
        "Programming Language :: Python :: 3",
    ],
    keywords="translation deepl localization glossary correction-memory",
)
