"""Hackathon Account Baseline - Main Package.

This package deploys the per-account hackathon baseline (budget alerts,
AWS Config monitoring and the configuration recorder) across team accounts
and the guardrails SCP to the hackathon organizational unit.
"""

__version__ = "1.0.0"
__author__ = "Hackathon Cloud Team"
