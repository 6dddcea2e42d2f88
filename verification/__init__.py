"""
Identity Verification Core

This package contains the verification workflow for one user submission:
- Document field extraction and rule validation
- Face quality, liveness and match decisions
- The orchestrator that owns each verification record's lifecycle
- Record storage, uploaded image storage and data retention
"""

__version__ = "1.0.0"
