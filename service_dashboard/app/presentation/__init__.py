"""
Presentation package.

Translates between the canonical resolver/codec shapes and what the UI
renders: ordering, grouping, descriptions and icon fallbacks. It never
makes a visibility decision of its own.

Modules of interest:
- models: UI request/response models and static presentation metadata.
- adapter: UI context -> resolver inputs, resolved result -> UI dashboard.
- catalog: Built-in dashboard declarations with their metadata.
"""
