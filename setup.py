#!/usr/bin/env python3
"""
Setup configuration for cloudapi
A Python client for a music-hosting service's REST API
"""

from setuptools import setup, find_packages

# Read README for long description
with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

# Core requirements (always installed)
core_requirements = [
    "requests>=2.31.0",
    "requests-toolbelt>=1.0.0",
    "click>=8.1.7",
    "rich-click>=1.7.0",
    "pyyaml>=6.0.1",
    "python-dotenv>=1.0.0",
    "tqdm>=4.66.1",
    "colorama>=0.4.6",
]

test_requirements = [
    "pytest>=7.4.3",
    "responses>=0.24.0",
]

setup(
    name="cloudapi",
    version="0.1.0",
    author="cloudapi contributors",
    description="OAuth2 client for a music-hosting REST API with automatic token refresh",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["cloudapi", "cloudapi.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Multimedia :: Sound/Audio",
        "Topic :: Internet :: WWW/HTTP",
        "Topic :: Software Development :: Libraries :: Python Modules",
    ],
    python_requires=">=3.10",
    install_requires=core_requirements,
    extras_require={
        "test": test_requirements,
        "dev": test_requirements + [
            "black>=23.11.0",
            "flake8>=6.1.0",
            "mypy>=1.7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "cloudapi=cloudapi.cli:cli",
        ],
    },
    keywords="soundcloud api oauth2 client streaming upload cli",
)
