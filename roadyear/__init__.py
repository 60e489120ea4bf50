"""RoadYear: construction year estimates for unpaved roads.

This package estimates when unpaved road segments were built by sampling
CanLaD disturbance-year rasters in a buffer around each road and taking a low
percentile of the pixel years found there.
"""

__version__ = "0.1.0"
__author__ = "Xavier Giroux-Bougard"
