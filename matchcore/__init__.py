"""Building blocks for matchmaking services: harnesses, health probes, counters, utilities and a cluster reaper."""

__version__ = "0.1.0"