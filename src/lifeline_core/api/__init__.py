"""HTTP surface of the Lifeline service"""

from lifeline_core.api.app import build_default_services, create_app
from lifeline_core.api.dependencies import LifelineServices

__all__ = ["create_app", "build_default_services", "LifelineServices"]
