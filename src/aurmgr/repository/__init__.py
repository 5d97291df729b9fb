__all__ = ["core", "sources"]

import aurmgr.repository.core as core
import aurmgr.repository.sources as sources
