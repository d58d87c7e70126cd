"""
personachat: persona chat backend.

POST /api/chat runs a rate-limited, validated conversation under one of three
personas against an OpenAI-compatible provider, answering with JSON or a
server-sent event stream, and queues the turn for best-effort persistence.
"""
