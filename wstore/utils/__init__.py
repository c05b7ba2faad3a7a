from .datetime_ import *
from .slugs import *
from .tags import *
