"""A2A (Agent-to-Agent) protocol client.

- discovery: fetch and validate AgentCards from /.well-known/agent.json
- client: JSON-RPC task calls and SSE streams
- auth: apply precomputed credentials to outgoing requests
"""
