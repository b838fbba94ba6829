"""
Bitcoin Block Endorser

A validator client for the endorsement protocol that provides:
- Endorsement of the current Bitcoin chain tip
- Catch-up scans for heights missed while the client was down
- Password-protected keystore loading
- Liveness probe for external monitoring
"""

__version__ = "0.1.0"
