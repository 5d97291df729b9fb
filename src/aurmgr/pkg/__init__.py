__all__ = ["build", "classify", "ops"]

import aurmgr.pkg.build as build
import aurmgr.pkg.classify as classify
import aurmgr.pkg.ops as ops
