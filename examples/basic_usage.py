"""
Basic usage example for influxlog.

Writes a handful of events to a local InfluxDB 1.x server. Start one with
``docker run -p 8086:8086 influxdb:1.8`` before running this script.
"""

import asyncio

from influxlog import InfluxDBConnectionInfo, InfluxDBSink, LogEvent, LogLevel


async def main() -> None:
    info = InfluxDBConnectionInfo(
        address="http://localhost", port=8086, database_name="example_logs"
    )

    async with InfluxDBSink(info, "logs", batch_size_limit=50, period=2.0) as sink:
        sink.emit(
            LogEvent.create(
                LogLevel.INFORMATION, "User {UserId} logged in", UserId=42
            )
        )
        sink.emit(
            LogEvent.create(
                "warn", "Slow request {Path} took {Elapsed:.1f} ms", Path="/", Elapsed=812.4
            )
        )

        try:
            1 / 0
        except ZeroDivisionError as exc:
            sink.emit(
                LogEvent.create(LogLevel.ERROR, "Computation failed", exception=exc)
            )

        # Leaving the block flushes whatever is still buffered
        await asyncio.sleep(0.1)


if __name__ == "__main__":
    asyncio.run(main())
