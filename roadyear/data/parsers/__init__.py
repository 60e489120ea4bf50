"""Data parsers for road vector formats."""

from roadyear.data.parsers.road_parser import LENGTH_FIELD, RoadParser

__all__ = ["RoadParser", "LENGTH_FIELD"]
