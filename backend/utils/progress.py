"""Calcul de l'écart et du statut d'avancement"""

from typing import Tuple

AHEAD_THRESHOLD = 5
AT_RISK_THRESHOLD = -10

PROGRESS_STATUSES = ("onTrack", "behind", "ahead", "atRisk")


def derive_progress(planned: float, actual: float) -> Tuple[float, str]:
    """Retourne (variance, status) pour un avancement prévu / réel

    >>> derive_progress(50, 56)
    (6, 'ahead')
    >>> derive_progress(50, 38)
    (-12, 'atRisk')
    """
    variance = actual - planned

    if variance >= AHEAD_THRESHOLD:
        status = "ahead"
    elif variance <= AT_RISK_THRESHOLD:
        status = "atRisk"
    elif variance < 0:
        status = "behind"
    else:
        status = "onTrack"

    return variance, status
