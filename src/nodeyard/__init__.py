"""nodeyard — node-graph workspaces persisted as single-file archives."""
