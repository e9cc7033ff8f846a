"""
userflow services.

- core/: Configuration, logging, errors, HTTP middleware, database
- tracing/: Causal context model, carrier, propagation, span scopes
- events/: NATS JetStream work queue, dead-letter, async user consumer
- rpc/: User gRPC service (server, client, codec)
- gateway/: HTTP API gateway
- company/: Company REST service
"""
