"""
Setup script for the voicegate voice front-end package
Enables editable installation: pip install -e .
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read README for long description
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text() if readme_file.exists() else ""

setup(
    name="voicegate",
    version="1.0.0",
    description="Adaptive voice activity detection and STT transcript validation for voice assistants",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="Voicegate Team",
    python_requires=">=3.10",
    packages=find_packages(exclude=["tests", "tests.*", "scripts"]),
    py_modules=["config"],
    install_requires=[
        "numpy>=1.26.4",
        "soundfile>=0.12.1",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
            "pytest-timeout>=2.1.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "voicegate-replay=voicegate.level_replay:main",
        ],
    },
)
