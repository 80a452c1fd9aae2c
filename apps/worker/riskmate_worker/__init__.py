"""Background tasks for the RiskMate audit ledger."""
