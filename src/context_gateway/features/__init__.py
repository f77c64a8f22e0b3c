"""
Fonctionnalités métier: état de session, stratégies, liste élagable,
action de pruning explicite et analyse en arrière-plan.
"""
