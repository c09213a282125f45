"""Organization-level guardrails (Service Control Policies)."""
