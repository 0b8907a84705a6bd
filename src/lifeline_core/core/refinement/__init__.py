"""Diagnostic refinement"""

from lifeline_core.core.refinement.engine import DiagnosticRefinementEngine
from lifeline_core.core.refinement.prompts import render_evidence

__all__ = ["DiagnosticRefinementEngine", "render_evidence"]
