"""
Policy package.

Holds the dashboard declaration model, the evaluation context and fact
value objects, and the visibility resolver that prunes a declaration
down to what one subject may see at one instant.

Modules of interest:
- models: Declarations, contexts, facts and resolved results.
- resolver: Dashboard-level gates followed by a pre-order section walk.

Declarations are validated when built; resolution itself never raises
for well-typed input.
"""
