"""
Policies package.

Defines the policy model and the decision engine. Policies pair principal,
action and resource patterns with an optional condition tree and an
effect; the engine scans them in order and denies by default.

Modules of interest:
- models: Policies, patterns, condition nodes, context and result.
- conditions: Condition tree evaluation over the entity graph.
- engine: Pattern matching and the decision algorithm.
- store_policies: The pet store policy set.
"""
