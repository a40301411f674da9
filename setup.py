"""
Setup configuration for badge-redeem package
"""
from setuptools import setup, find_packages
from pathlib import Path

# Read requirements from requirements.txt
def read_requirements(filename):
    """Read requirements from file"""
    requirements_path = Path(__file__).parent / filename
    if requirements_path.exists():
        with open(requirements_path, 'r', encoding='utf-8') as f:
            return [
                line.strip() 
                for line in f 
                if line.strip() and not line.startswith('#') and not line.startswith('-r')
            ]
    return []

# Read README for long description
readme_path = Path(__file__).parent / "README.md"
long_description = ""
if readme_path.exists():
    with open(readme_path, 'r', encoding='utf-8') as f:
        long_description = f.read()

setup(
    name="badge-redeem",
    version="0.1.0",
    description="Download-token client for student achievement badges",
    long_description=long_description,
    long_description_content_type="text/markdown",

    # Package discovery
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.8",

    # Runtime dependencies
    install_requires=read_requirements("requirements.txt"),

    # Optional dependencies
    extras_require={
        "dev": read_requirements("requirements-dev.txt"),  # -r line is filtered out
        "test": read_requirements("requirements-dev.txt"),
    },

    entry_points={
        "console_scripts": [
            "badge-redeem=badge_redeem.cli:run",
        ],
    },

    # Metadata
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Education",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Framework :: AsyncIO",
    ],
)
