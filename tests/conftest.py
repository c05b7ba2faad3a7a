from tests.fixtures.postgresql import *
from tests.fixtures.database import *
