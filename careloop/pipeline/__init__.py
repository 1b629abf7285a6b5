from .engine import CareloopEngine, EngineResult

__all__ = ["CareloopEngine", "EngineResult"]
