"""HTTP interface for the report pipeline."""
