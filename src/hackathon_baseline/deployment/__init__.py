"""Per-account baseline deployment.

Account iteration, scoped credential acquisition, the operation registry,
the deployment orchestrator and outcome reporting.
"""
