"""
The :mod:`trajflow` module infers lineages and pseudotimes from clustered,
reduced-dimensional data.

Lineages are found as the root-to-leaf paths of a minimum spanning forest
built over the clusters, then refined into smooth curves with simultaneous
principal curves.


To do:
======
- Currently, __version__ must be manually updated in _version.py and setup.py.
  This should be automated to ensure agreement.
"""

from ._version import __version__

from trajflow._logging import set_verbose
from trajflow.checks import ConfigurationError, InsufficientDataError
from trajflow.classes import Lineage, Trajectory
from trajflow.curves.principal import PrincipalCurve, principal_curve
from trajflow.pipelines import get_lineages, get_curves, slingshot
