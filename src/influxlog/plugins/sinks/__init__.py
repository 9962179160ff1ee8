"""
Sink implementations.

Currently ships the InfluxDB sink and its HTTP writer.
"""

from .influxdb import InfluxDBSink
from .influxdb_client import InfluxDBWriter, PointWriter

__all__ = ["InfluxDBSink", "InfluxDBWriter", "PointWriter"]
