# src/carbonledger/runtime/executor_boot.py

from __future__ import annotations

from typing import Optional

from carbonledger.runtime.engine_config import EngineConfig, load_engine_config
from carbonledger.runtime.executor import CarbonExecutor


def build_executor(cfg: Optional[EngineConfig] = None) -> CarbonExecutor:
    """
    Build a CarbonExecutor from an explicit engine config or, if omitted,
    from CARBON_CONFIG_PATH / environment variables.

    `carbonledger.api.app` calls this with no args in production.
    """
    c = cfg or load_engine_config()
    return CarbonExecutor(db_path=c.db_path, chain_id=c.chain_id, config=c)
