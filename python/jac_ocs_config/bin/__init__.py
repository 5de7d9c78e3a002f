# This file is part of jac_ocs_config.
#
# Developed for the JCMT Observatory Control System (OCS).
# See the LICENSE file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.
