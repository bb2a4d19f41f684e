"""
Feature modules live under this package.

Keep module boundaries clean: each module owns its models, store and service,
while reusing platform primitives (config, audit, DB session).
"""
