from __future__ import annotations

from risq.pipeline.settings import PipelineSettings, get_settings

settings: PipelineSettings = get_settings()
