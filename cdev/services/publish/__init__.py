"""Git-based release orchestration (the ``publish`` command).

Entry point is ``engine.PublishEngine``; the other modules are its
components and can be used on their own.
"""
