"""Adapter package for external I/O implementations.

Purpose:
    Concrete implementations of the domain ports: REST clients for the
    device registry, token service and package-management tasks, the
    artifact stager and the chunked uploader.

Dependencies:
    Individual submodules depend on ``requests`` and filesystem APIs.

Call context:
    Wired together by ``fleetext.engine.build_engine``; tests replace the
    underlying sessions with doubles.
"""
