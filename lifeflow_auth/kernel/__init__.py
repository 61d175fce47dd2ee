"""
Authentication kernel.

- Models: identity records and session records
- Identity: password digests, token issuing, device classification,
  the authentication orchestrator
- Sessions: the durable store of issued refresh credentials
"""
