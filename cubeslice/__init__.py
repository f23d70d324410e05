"""Dimensional modeling and aggregate query compilation"""

__version__ = "0.1"

from .common import *
from .errors import *
from .logging import *
from .metadata import *
from .query import *
from .store import *
from .config import *
from .workspace import *
