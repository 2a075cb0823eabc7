"""Click commands for websync."""
