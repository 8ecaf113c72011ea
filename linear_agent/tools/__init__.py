"""Operation catalog and executor for the agent's Linear tools."""
