"""
Scorers and the pipeline that runs them.
CNA, entropy, network activity and per-sample heterogeneity.
"""
from .cna import *
from .entropy import *
from .ppin import *
from .heterogeneity import *
from .pipeline import *
