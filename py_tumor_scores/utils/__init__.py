"""
Utility functions for matrix access and loading external tool outputs.
"""
from .matrix import *
from .io import *
