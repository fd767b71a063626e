"""Row analysis orchestrator for an unreliable remote classification endpoint.

Why not a generic task queue?
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
A batch here is a few hundred short-lived HTTP calls owned by one caller who
wants per-row results while the batch is still running. The pieces that
matter are all specific to the endpoint contract:

- Staggered launch and a fixed worker pool so batch start does not hammer
  the endpoint.
- Status-driven retry policy (5xx / 429 / network retried, other 4xx final,
  202 reported as still processing).
- Layered parsing of the sandwiched verdict with a known-safe default.
- A typed progress event stream with per-row ordering.

asyncio tasks and queues cover the scheduling; there is nothing to persist.
"""
