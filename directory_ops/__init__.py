"""directory-ops: Schema-validated command surface over a remote identity directory.

Exposes named operations on users, groups, and application grants through a
uniform call/response protocol.  Beyond the single-call CRUD commands, the
package provides a degrading attribute search (native filter, free text,
client-side scan) and a three-stage bulk onboarding workflow with per-entity
failure isolation.
"""

__version__ = "0.3.0"
