"""
atelier_services -- Package init and public API.

Responsibility:
    Orchestration services that compose the pure engines (atelier_engines/)
    with the kernel stores and approval lifecycle.

Architecture position:
    Services -- orchestration over engines + kernel.

    Dependency direction:
        atelier_services/ -> atelier_engines/  (allowed)
        atelier_services/ -> atelier_kernel/   (allowed)
        atelier_engines/  -> atelier_services/ (FORBIDDEN)
        atelier_kernel/   -> atelier_services/ (FORBIDDEN)

Invariants enforced:
    - Layer isolation: atelier_kernel and atelier_engines never import
      from this package.
"""

from atelier_services.rule_application import RuleApplicator
from atelier_services.stage_gate import StageGate

__all__ = [
    "RuleApplicator",
    "StageGate",
]
