"""Use-case layer for extension orchestration workflows.

Each module coordinates domain objects and ports without performing transport
I/O directly; adapters are injected at wiring time (``fleetext.engine``).
"""
