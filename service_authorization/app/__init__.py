"""
Authorization Service package for the Pet Store platform.

This package decides whether an authenticated principal may perform an
action on a store, pet, order or the application itself. It provides:

- app.entities: Entity graph model and the builder turning claims and
  domain records into it.
- app.domain: Identity claims, domain records and the record lookup.
- app.policies: Policy model, condition evaluation, decision engine and
  the pet store policy set.
- app.actions: Route to action resolution.
- app.service: Orchestration of one authorization check.
- app.guard: FastAPI dependency enforcing decisions.

Guidelines:
- Decisions are pure functions of the context; nothing is cached between
  requests.
- Missing records only ever remove entities; the engine fails closed.
"""
