"""
Setup script for the RF Sweep Measurement System.
"""

from setuptools import setup, find_packages

setup(
    name="rfsweep",
    version="1.0.0",
    description="RFID frequency/power sweep and continuous capture controller",
    author="RF Sweep Team",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.8",
    install_requires=[
        "numpy>=1.20.0",
        "pandas>=2.0.0",
        "sllurp>=0.5.0",
        "twisted>=21.0.0",
    ],
    extras_require={
        "mercury": ["python-mercuryapi"],
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "rfsweep=cli.app:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Science/Research",
        "Topic :: Scientific/Engineering",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
    ],
)
