__all__ = ["core", "ops", "reconcile"]

import aurmgr.state.core as core
import aurmgr.state.ops as ops
import aurmgr.state.reconcile as reconcile
