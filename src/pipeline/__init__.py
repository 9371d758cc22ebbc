"""Pipeline runtime: builds the processors and executes dispatched work.

Stages, in order:
  normalize  : raw uploads -> plain-text chunks
  categorize : chunks -> category results + master profile
  personas   : category results -> per-category personas
"""

from digitaldna.pipeline.runtime import PipelineRuntime, build_llm

__all__ = ["PipelineRuntime", "build_llm"]
