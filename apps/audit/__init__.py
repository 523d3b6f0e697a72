"""
Audit application.

Append-only audit trail of state-changing actions and versioned history of
configuration changes.
"""
