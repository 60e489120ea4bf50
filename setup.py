"""Setup script for RoadYear.

Install in development mode with ``pip install -e .[test]``.
"""

from setuptools import setup

# Read version from roadyear/__init__.py
with open("roadyear/__init__.py") as f:
    for line in f:
        if line.startswith("__version__"):
            version = line.split('"')[1]
            break

setup(
    name="roadyear",
    version=version,
    description="Unpaved road construction year estimates from CanLaD disturbance rasters",
    author="Xavier Giroux-Bougard",
    license="Apache-2.0",
    packages=[
        "roadyear",
        "roadyear.data",
        "roadyear.data.parsers",
        "roadyear.utils",
    ],
    python_requires=">=3.9",
    install_requires=[
        "numpy>=1.22",
        "pandas>=1.4",
        "geopandas>=1.0",
        "shapely>=2.0",
        "rasterio>=1.3",
        "affine<3",  # affine 3.x breaks rasterio.transform (cached_property on __slots__)
        "PyYAML>=6.0",
        "omegaconf>=2.1",
        "tqdm>=4.60",
        "matplotlib>=3.5",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
)
