"""
Context Pruning Gateway.

Réécrit les requêtes sortantes vers les providers LLM en remplaçant les tool
results devenus inutiles par un marqueur court.
"""

__version__ = "1.0.0"
