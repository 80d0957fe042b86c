"""Apify connector package.

The package is structured around one orchestration run:
- `models.py` defines the request/response schema the connector owns.
- `clients/` contains the remote job client interface and the Apify implementation.
- `extraction.py` normalizes raw dataset records into export items.
- `state.py` and `expressions.py` compute the state blob carried to the next run.
- `orchestrator.py` ties submission, polling, extraction and state mapping together.
"""

__version__ = "0.1.0"
