"""Asset catalog: records, reconciliation and scoped listings."""
