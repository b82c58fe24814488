"""
job-monitor - schedule preview and live execution-log primitives.

- jobmonitor.scheduling: cron parsing, matching, upcoming runs, descriptions
- jobmonitor.execution: step event stream reconstruction and transports
- jobmonitor.core: errors, results, logging, settings
"""

__version__ = "0.1.0"
