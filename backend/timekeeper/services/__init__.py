"""Domain services: session state machine, persistence, scheduling, statistics.

The session subpackage holds the framework-free core. The modules beside it
adapt that core to Flask: the SQLAlchemy gateway, the active-session
registry, the clock scheduler and the statistics queries.
"""
