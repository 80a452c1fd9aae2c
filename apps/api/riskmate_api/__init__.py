"""RiskMate audit ledger API."""
