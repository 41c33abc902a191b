"""HTTP API Song Agent: JSON-RPC (A2A), REST и SSE endpoints."""
