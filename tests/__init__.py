"""Test package for the word-round session trainer.

Core modules (session controller, countdown, content client) are tested
without pygame or network access: time comes from fake clocks, content from
in-memory sources or ``httpx.MockTransport``.  The UI smoke tests use SDL's
dummy drivers so they run headlessly.  Run ``pytest`` from the project root.
"""
