"""
Tumor scoring package for single-cell RNA-seq data.
This package computes per-cell CNA, entropy and network-activity scores and
per-sample transcriptional heterogeneity from breast cancer scRNA-seq.
"""
__version__ = "0.1.0"

from .errors import *
from .config import *
from . import run
from . import utils
