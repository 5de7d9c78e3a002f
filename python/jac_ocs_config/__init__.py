# This file is part of jac_ocs_config.
#
# Developed for the JCMT Observatory Control System (OCS).
# See the LICENSE file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

"""Read, validate, modify and write JCMT OCS configurations."""

from .acsis import *
from .cfgbase import *
from .config import *
from .coords import *
from .duration import *
from .errors import *
from .frontend import *
from .header import *
from .instrument import *
from .jos import *
from .obssummary import *
from .pol import *
from .rts import *
from .scuba2 import *
from .settings import *
from .tcs import *
from .version import *
