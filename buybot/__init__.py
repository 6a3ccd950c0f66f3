"""
MMV Buy Bot

Presale purchase alerts with resilient on-chain event ingestion.
"""

__version__ = "0.2.0"
